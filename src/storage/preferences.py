from __future__ import annotations

from src.storage.kv_store import KeyValueStore, StorageKeys, read_flag, write_flag


class SessionPreferences:
    """
    User toggles that survive across sessions. Each setter writes back to the
    store immediately; there is a single writer so no locking is done.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._push_to_talk = read_flag(store, StorageKeys.PUSH_TO_TALK, False)
        self._logs_expanded = read_flag(store, StorageKeys.LOGS_EXPANDED, False)
        self._audio_playback_enabled = read_flag(
            store, StorageKeys.AUDIO_PLAYBACK_ENABLED, True
        )

    @property
    def push_to_talk(self) -> bool:
        return self._push_to_talk

    @push_to_talk.setter
    def push_to_talk(self, value: bool) -> None:
        self._push_to_talk = bool(value)
        write_flag(self._store, StorageKeys.PUSH_TO_TALK, self._push_to_talk)

    @property
    def logs_expanded(self) -> bool:
        return self._logs_expanded

    @logs_expanded.setter
    def logs_expanded(self, value: bool) -> None:
        self._logs_expanded = bool(value)
        write_flag(self._store, StorageKeys.LOGS_EXPANDED, self._logs_expanded)

    @property
    def audio_playback_enabled(self) -> bool:
        return self._audio_playback_enabled

    @audio_playback_enabled.setter
    def audio_playback_enabled(self, value: bool) -> None:
        self._audio_playback_enabled = bool(value)
        write_flag(
            self._store, StorageKeys.AUDIO_PLAYBACK_ENABLED, self._audio_playback_enabled
        )
