import base64

import numpy as np


def float_to_16bit_pcm(float32_array: np.ndarray) -> np.ndarray:
    """
    Converts a numpy array of float32 amplitude data to a numpy array in int16 format.

    Args:
        float32_array (np.ndarray): Input float32 numpy array.

    Returns:
        np.ndarray: Output int16 numpy array.
    """
    int16_array = np.clip(float32_array, -1, 1) * 32767
    return int16_array.astype(np.int16)


def base64_to_pcm16(base64_string: str) -> np.ndarray:
    """
    Decodes a base64 audio delta into int16 samples.
    """
    binary_data = base64.b64decode(base64_string)
    if len(binary_data) % 2:
        binary_data = binary_data[:-1]
    return np.frombuffer(binary_data, dtype=np.int16)


def array_buffer_to_base64(array_buffer) -> str:
    """
    Converts audio samples to a base64 encoded pcm16 string.

    Args:
        array_buffer (np.ndarray | bytes): float32 or int16 samples, or raw pcm16 bytes.

    Returns:
        str: Base64 encoded string.
    """
    if isinstance(array_buffer, (bytes, bytearray)):
        return base64.b64encode(bytes(array_buffer)).decode("utf-8")
    if array_buffer.dtype == np.float32:
        array_buffer = float_to_16bit_pcm(array_buffer)
    return base64.b64encode(array_buffer.tobytes()).decode("utf-8")
