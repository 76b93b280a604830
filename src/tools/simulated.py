"""
Simulated handlers for the built-in demo scenario tools.
"""

import random
import string
import time
from typing import Any, Dict, Optional

from src.tools.dispatcher import SimulatedHandler

MOTIVATION_QUOTES: Dict[str, list] = {
    "perseverance": [
        "It does not matter how slowly you go as long as you do not stop. - Confucius",
        "Success is not final, failure is not fatal: it is the courage to continue that counts. - Winston Churchill",
    ],
    "success": [
        "Success is walking from failure to failure with no loss of enthusiasm. - Winston Churchill",
        "The only way to do great work is to love what you do. - Steve Jobs",
    ],
    "growth": [
        "Be not afraid of growing slowly, be afraid only of standing still. - Chinese Proverb",
        "The only person you are destined to become is the person you decide to be. - Ralph Waldo Emerson",
    ],
    "courage": [
        "Courage is not the absence of fear, but rather the judgment that something else is more important than fear. - Ambrose Redmoon",
    ],
    "focus": [
        "The successful warrior is the average man, with laser-like focus. - Bruce Lee",
    ],
}


async def lookup_account_handler(
    email: Optional[str] = None, account_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Look up a customer account.
    """
    return {
        "account_id": account_id or "ACC-12345",
        "name": "Demo Customer",
        "email": email or "customer@example.com",
        "plan": "Premium",
        "status": "Active",
        "created": "2024-01-15",
    }


async def check_service_status_handler() -> Dict[str, Any]:
    return {
        "status": "operational",
        "message": "All systems are running normally.",
        "last_incident": "2024-10-15",
    }


async def run_diagnostics_handler(account_id: str, test_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Run diagnostics on an account.
    """
    return {
        "account_id": account_id,
        "test_type": test_type or "full",
        "results": {
            "connectivity": "OK",
            "performance": "OK",
            "security": "OK",
        },
        "recommendation": "No issues detected. Account is functioning normally.",
    }


async def process_refund_handler(account_id: str, amount: float, reason: str) -> Dict[str, Any]:
    """
    Process a refund.
    """
    refund_id = "REF-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return {
        "success": True,
        "refund_id": refund_id,
        "account_id": account_id,
        "amount": amount,
        "reason": reason,
        "message": f"Refund of ${amount} has been processed. It will appear in 3-5 business days.",
    }


async def set_goal_handler(
    goal: str, deadline: Optional[str] = None, category: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "success": True,
        "goal_id": f"GOAL-{int(time.time() * 1000)}",
        "goal": goal,
        "deadline": deadline or "Not set",
        "category": category or "personal",
        "message": f'Great! I\'ve noted your goal: "{goal}". Let\'s make it happen!',
    }


async def get_motivation_quote_handler(theme: Optional[str] = None) -> Dict[str, Any]:
    theme = theme or "success"
    quotes = MOTIVATION_QUOTES.get(theme, MOTIVATION_QUOTES["success"])
    return {"quote": random.choice(quotes), "theme": theme}


async def start_focus_session_handler(
    duration: Optional[float] = None, task: Optional[str] = None
) -> Dict[str, Any]:
    duration = duration or 25
    return {
        "session_started": True,
        "duration_minutes": duration,
        "task": task or "Deep work",
        "message": f'Focus session started! {duration} minutes of focused work on "{task or "your task"}".',
    }


SIMULATED_HANDLERS: Dict[str, SimulatedHandler] = {
    "lookup_account": lookup_account_handler,
    "check_service_status": check_service_status_handler,
    "run_diagnostics": run_diagnostics_handler,
    "process_refund": process_refund_handler,
    "set_goal": set_goal_handler,
    "get_motivation_quote": get_motivation_quote_handler,
    "start_focus_session": start_focus_session_handler,
}
