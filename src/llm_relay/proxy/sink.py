"""
Encodage du protocole SSE sortant.

Une frame par élément, terminée par une ligne vide:
- delta:    data: {"choices":[{"delta":{"content":"..."}}]}
- erreur:   event: error / data: {"message":"..."}
- terminal: data: [DONE]
"""
import json
from typing import List

from ..core.constants import SSE_DONE_PAYLOAD
from ..core.models import NormalizedDelta, RawFrame, TerminalEvent


def format_delta(text: str) -> bytes:
    payload = {"choices": [{"delta": {"content": text}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def format_error(message: str) -> bytes:
    payload = {"message": message}
    return f"event: error\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def format_done() -> bytes:
    return f"data: {SSE_DONE_PAYLOAD}\n\n".encode("utf-8")


class EventSink:
    """
    Writer du stream uniforme d'une requête.

    Garantit au plus une frame d'erreur et exactement un terminal, toujours
    en dernier: après terminate(), plus rien n'est encodé.
    """

    def __init__(self):
        self.frames_written = 0
        self.error_sent = False
        self.terminated = False

    def write(self, item) -> bytes:
        """Encode un NormalizedDelta ou relaie une RawFrame."""
        if self.terminated:
            return b""
        if isinstance(item, NormalizedDelta):
            frame = format_delta(item.text)
        elif isinstance(item, RawFrame):
            frame = item.data
        else:
            raise TypeError(f"Élément de stream inattendu: {type(item).__name__}")
        self.frames_written += 1
        return frame

    def terminate(self, event: TerminalEvent) -> List[bytes]:
        """
        Frames de fin: erreur éventuelle puis `data: [DONE]`.

        Idempotent: un second appel ne produit rien.
        """
        if self.terminated:
            return []
        frames = []
        if event.is_error and not self.error_sent:
            frames.append(format_error(event.error_message))
            self.error_sent = True
        frames.append(format_done())
        self.terminated = True
        self.frames_written += len(frames)
        return frames
