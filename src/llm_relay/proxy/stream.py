"""
Normalisation des réponses providers en deltas canoniques.

Pourquoi trois normaliseurs:
- OpenRouter parle déjà SSE: les frames sont relayées telles quelles
- generateContent renvoie un seul document JSON
- streamGenerateContent envoie un tableau JSON découpé n'importe où, parfois
  avec des objets collés sans séparateur: il faut bufferiser et re-parser
"""
import json
import logging
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from ..core.constants import (
    FAMILY_GEMINI,
    MAX_RECOVERY_ATTEMPTS,
    SHAPE_BUFFERED_JSON_STREAM,
    SHAPE_SINGLE_JSON,
    SHAPE_SSE_PASSTHROUGH,
    SSE_DONE_PAYLOAD,
)
from ..core.exceptions import ConfigurationError, MalformedUpstreamData, UpstreamError
from ..core.models import NormalizedDelta, ProviderDescriptor, RawFrame

logger = logging.getLogger(__name__)

STATE_STREAMING = "streaming"
STATE_DONE = "done"

StreamItem = Union[NormalizedDelta, RawFrame]
TextExtractor = Callable[[Dict[str, Any]], Optional[str]]

_WHITESPACE = b" \t\r\n"
# Séparateurs laissés en bordure par le tableau JSON de streamGenerateContent
_ARRAY_EDGES = b"[],"
_SSE_FRAME_END = re.compile(rb"\r?\n\r?\n")
# Début de l'objet suivant après une accolade fermante de premier niveau
_NEXT_OBJECT = re.compile(rb"\s*,?\s*\{")
_OPENERS = frozenset(b"{[")
_CLOSERS = frozenset(b"}]")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_CLOSE_BRACE = ord("}")


# ============================================================================
# EXTRACTION DU TEXTE
# ============================================================================

def extract_gemini_text(value: Dict[str, Any]) -> Optional[str]:
    """Premier texte trouvé dans candidates[0].content.parts."""
    candidates = value.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    for part in content.get("parts") or []:
        if isinstance(part, dict) and isinstance(part.get("text"), str):
            return part["text"]
    return None


def extract_openai_text(value: Dict[str, Any]) -> Optional[str]:
    """Texte de choices[0].message.content (réponse non-streaming)."""
    choices = value.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def get_extractor(family: str) -> TextExtractor:
    return extract_gemini_text if family == FAMILY_GEMINI else extract_openai_text


# ============================================================================
# BUFFER
# ============================================================================

class StreamBuffer:
    """Accumulateur d'octets d'un seul appel upstream."""

    def __init__(self):
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def append(self, chunk: bytes) -> None:
        self._data.extend(chunk)

    def replace(self, data: bytes) -> None:
        self._data = bytearray(data)

    def clear(self) -> None:
        self._data.clear()

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def stripped(self) -> bytes:
        return bytes(self._data).strip(_WHITESPACE)


# ============================================================================
# NORMALISEURS
# ============================================================================

class BaseNormalizer:
    """
    Machine à états STREAMING → DONE pilotée par les chunks upstream.

    feed() ne fait rien une fois DONE; close() est idempotent.
    """

    shape: str = ""

    def __init__(self, provider: str = "", extractor: TextExtractor = extract_openai_text):
        self.provider = provider
        self.extractor = extractor
        self.state = STATE_STREAMING
        self.error_message: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state == STATE_DONE

    def feed(self, chunk: bytes) -> List[StreamItem]:
        if self.done or not chunk:
            return []
        return self._feed(chunk)

    def close(self) -> List[StreamItem]:
        if self.done:
            return []
        try:
            return self._close()
        finally:
            self.state = STATE_DONE

    def fail(self, message: str) -> None:
        """Termine le normaliseur en erreur."""
        self.state = STATE_DONE
        self.error_message = message

    def _feed(self, chunk: bytes) -> List[StreamItem]:
        raise NotImplementedError

    def _close(self) -> List[StreamItem]:
        return []


class SSEPassthroughNormalizer(BaseNormalizer):
    """
    Relais verbatim des frames SSE upstream.

    Seule la frame `data: [DONE]` du provider est retenue: le terminal
    est émis une seule fois, par la session.
    """

    shape = SHAPE_SSE_PASSTHROUGH

    def __init__(self, provider: str = "", extractor: TextExtractor = extract_openai_text):
        super().__init__(provider, extractor)
        self._pending = b""

    def _feed(self, chunk: bytes) -> List[StreamItem]:
        self._pending += chunk
        items = []
        while True:
            match = _SSE_FRAME_END.search(self._pending)
            if match is None:
                break
            frame = self._pending[:match.end()]
            self._pending = self._pending[match.end():]
            if not _is_done_frame(frame):
                items.append(RawFrame(frame))
        return items

    def _close(self) -> List[StreamItem]:
        rest, self._pending = self._pending, b""
        if rest.strip(_WHITESPACE) and not _is_done_frame(rest):
            return [RawFrame(rest.rstrip(b"\r\n") + b"\n\n")]
        return []


def _is_done_frame(frame: bytes) -> bool:
    for line in frame.splitlines():
        if line.startswith(b"data:") and line[5:].strip() == SSE_DONE_PAYLOAD.encode():
            return True
    return False


class SingleJSONNormalizer(BaseNormalizer):
    """Lit le body complet, puis émet exactement un delta."""

    shape = SHAPE_SINGLE_JSON

    def __init__(self, provider: str = "", extractor: TextExtractor = extract_openai_text):
        super().__init__(provider, extractor)
        self._buffer = StreamBuffer()

    def _feed(self, chunk: bytes) -> List[StreamItem]:
        self._buffer.append(chunk)
        return []

    def _close(self) -> List[StreamItem]:
        raw = self._buffer.getvalue()
        self._buffer.clear()
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise UpstreamError(
                f"Réponse JSON invalide du provider {self.provider}",
                provider=self.provider
            ) from e

        text = self.extractor(value) if isinstance(value, dict) else None
        return [NormalizedDelta(text or "")]


class BufferedJSONStreamNormalizer(BaseNormalizer):
    """
    Réassemblage incrémental de valeurs JSON sans délimiteur fiable.

    Le buffer est re-parsé à chaque chunk. Une valeur complète est extraite
    puis le buffer vidé. Tant qu'un objet ou une chaîne reste ouvert, la frame
    est incomplète et on attend la suite. Un buffer équilibré mais invalide
    passe par une récupération (découpe au premier `}{` hors chaîne); au-delà
    de MAX_RECOVERY_ATTEMPTS échecs consécutifs sur un même chunk, ou sans
    frontière où découper, il est abandonné et le stream continue.
    """

    shape = SHAPE_BUFFERED_JSON_STREAM

    def __init__(
        self,
        provider: str = "",
        extractor: TextExtractor = extract_gemini_text,
        max_recovery_attempts: int = MAX_RECOVERY_ATTEMPTS
    ):
        super().__init__(provider, extractor)
        self.buffer = StreamBuffer()
        self.max_recovery_attempts = max_recovery_attempts
        self.discarded_buffers = 0

    def _feed(self, chunk: bytes) -> List[StreamItem]:
        self.buffer.append(chunk)
        items: List[StreamItem] = []
        # Compteur par chunk: une valeur découpée en N morceaux ne doit pas épuiser le quota
        failed_attempts = 0

        while self.buffer:
            trimmed = self.buffer.stripped()
            edged = trimmed.strip(_ARRAY_EDGES + _WHITESPACE)
            if not edged:
                # Reste uniquement des séparateurs de tableau
                self.buffer.clear()
                break

            ok, value = _parse_value(trimmed)
            if ok:
                items.extend(self._extract(value))
                self.buffer.clear()
                break

            structure = scan_structure(edged)
            if structure.is_open or not edged.endswith((b"}", b"]")):
                # Frame incomplète: on attend la suite
                break

            failed_attempts += 1
            if failed_attempts > self.max_recovery_attempts or structure.boundary is None:
                self._discard(trimmed, failed_attempts)
                break

            left_end, right_start = structure.boundary
            ok, value = _parse_value(edged[:left_end])
            if ok:
                items.extend(self._extract(value))
                failed_attempts = 0
            self.buffer.replace(edged[right_start:])

        return items

    def _close(self) -> List[StreamItem]:
        if self.buffer.stripped().strip(_ARRAY_EDGES + _WHITESPACE):
            logger.debug(f"[STREAM] {self.provider}: buffer partiel ignoré à la fermeture ({len(self.buffer)} octets)")
        self.buffer.clear()
        return []

    def _extract(self, value: Any) -> List[StreamItem]:
        values = value if isinstance(value, list) else [value]
        items = []
        for element in values:
            if not isinstance(element, dict):
                continue
            text = self.extractor(element)
            if text is not None:
                items.append(NormalizedDelta(text))
        return items

    def _discard(self, trimmed: bytes, attempts: int) -> None:
        error = MalformedUpstreamData(
            f"Buffer abandonné après {attempts} tentative(s) de récupération",
            provider=self.provider,
            preview=trimmed[:100].decode("utf-8", errors="replace")
        )
        logger.warning(f"[STREAM] {error}")
        self.buffer.clear()
        self.discarded_buffers += 1


class Structure(NamedTuple):
    """Résultat de scan_structure()."""
    depth: int
    in_string: bool
    # (fin du fragment gauche, début du fragment droit) ou None
    boundary: Optional[Tuple[int, int]]

    @property
    def is_open(self) -> bool:
        return self.in_string or self.depth > 0


def scan_structure(raw: bytes) -> Structure:
    """
    Parcourt le buffer en suivant chaînes et imbrication.

    Les accolades et crochets dans une chaîne JSON ne comptent pas. Une
    fermante orpheline ramène la profondeur à zéro. La frontière retenue est
    le premier `}` de premier niveau suivi (à un `,` près) d'un `{`.
    """
    depth = 0
    in_string = False
    escaped = False
    boundary = None

    for index, byte in enumerate(raw):
        if in_string:
            if escaped:
                escaped = False
            elif byte == _BACKSLASH:
                escaped = True
            elif byte == _QUOTE:
                in_string = False
        elif byte == _QUOTE:
            in_string = True
        elif byte in _OPENERS:
            depth += 1
        elif byte in _CLOSERS:
            depth -= 1
            if depth <= 0:
                depth = 0
                if boundary is None and byte == _CLOSE_BRACE:
                    match = _NEXT_OBJECT.match(raw, index + 1)
                    if match is not None:
                        boundary = (index + 1, match.end() - 1)

    return Structure(depth, in_string, boundary)


def _parse_value(raw: bytes) -> Tuple[bool, Any]:
    """
    Parse spéculatif d'un objet ou tableau JSON.

    Essaie le buffer tel quel, puis débarrassé des séparateurs de tableau
    en bordure, puis comme suite d'éléments `a,b` d'un tableau non fermé.
    Les scalaires ne comptent pas comme une valeur.
    """
    candidates = [raw]
    edged = raw.strip(_ARRAY_EDGES + _WHITESPACE)
    if edged != raw:
        candidates.append(edged)
    if b"," in edged:
        candidates.append(b"[" + edged + b"]")

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, (dict, list)):
            return True, value
    return False, None


# ============================================================================
# FACTORY
# ============================================================================

_NORMALIZERS = {
    SHAPE_SSE_PASSTHROUGH: SSEPassthroughNormalizer,
    SHAPE_SINGLE_JSON: SingleJSONNormalizer,
    SHAPE_BUFFERED_JSON_STREAM: BufferedJSONStreamNormalizer,
}


def create_normalizer(descriptor: ProviderDescriptor) -> BaseNormalizer:
    """Crée un normaliseur neuf (et son buffer) pour un appel upstream."""
    normalizer_cls = _NORMALIZERS.get(descriptor.response_shape)
    if normalizer_cls is None:
        raise ConfigurationError(
            f"Aucun normaliseur pour {descriptor.response_shape}",
            config_key=f"providers.{descriptor.tag}.response_shape"
        )
    return normalizer_cls(provider=descriptor.tag, extractor=get_extractor(descriptor.family))
