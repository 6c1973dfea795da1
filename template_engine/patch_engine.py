"""
Patch Engine

Replays an ordered list of editor patches against a base document so the
latest edited state can be reproduced without storing full documents.

Patch kinds:
- ``innerText``: replace the element's text content
- ``reorder``: move the element next to a sibling
  ({"after_id": ...} / {"before_id": ...}, before wins when both resolve)
- any other attribute name: set it, or remove it when the value is
  null or ""

Targets are located by identity attribute, then ``id``, then the alternate
lookup attributes. Patches that cannot be resolved or validated are skipped
and reported; replay always continues.

All patch kinds are idempotent: text and attribute patches overwrite, and a
reorder leaves an element that is already in place where it is.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from .config import settings
from .document import SvgDocument
from .extraction import stringify
from .identity import ensure_identities
from .models import PatchReport
from .schemas.patch import Patch, ReorderTarget
from .utils.logging import get_logger

logger = get_logger(__name__)

ALTERNATE_LOOKUP_ATTRIBUTES: Tuple[str, ...] = ("name", "data-name")

PatchInput = Union[Patch, Dict[str, Any]]


class PatchEngine:
    """
    Applies patches to SvgDocuments.

    Example:
        engine = PatchEngine()
        text, report = engine.replay(base_svg, [
            {"id": "Name.text", "attribute": "innerText", "value": "Jane"},
            {"id": "Logo", "attribute": "reorder", "value": {"before_id": "Title"}},
        ])
        print(report)  # "2/2"
    """

    def __init__(self, identity_attribute: Optional[str] = None, debug: bool = False):
        """
        Initialize the engine.

        Args:
            identity_attribute: Attribute holding element identities
                                (defaults to settings.identity_attribute)
            debug: If True, log every applied patch
        """
        self.identity_attribute = identity_attribute or settings.identity_attribute
        self.debug = debug

    @property
    def lookup_attributes(self) -> List[str]:
        return [self.identity_attribute, "id", *ALTERNATE_LOOKUP_ATTRIBUTES]

    def locate(self, document: SvgDocument, target: Optional[str]) -> Optional[int]:
        return document.find(target, self.lookup_attributes)

    def apply(self, document: SvgDocument, patches: Sequence[PatchInput]) -> PatchReport:
        """
        Apply patches in list order, mutating the document.

        The document is expected to already carry identities (see
        ``ensure_identities``); ``replay`` takes care of that.

        Args:
            document: Document to mutate
            patches: Patch models or plain dicts with id/attribute/value

        Returns:
            PatchReport with applied/total counts and skipped indices
        """
        report = PatchReport(total=len(patches))

        for index, raw in enumerate(patches):
            patch = self._validate(raw, index)
            if patch is None or not self._apply_one(document, patch, index):
                report.skipped.append(index)
                continue
            report.applied += 1
            if self.debug:
                logger.debug(f"Applied patch {index}: {patch.attribute} on {patch.id!r}")

        if report.skipped:
            logger.warning(f"Skipped {report.skipped_count} of {report.total} patches")
        logger.info(f"Applied {report} patches")
        return report

    def replay(self, svg_text: str, patches: Sequence[PatchInput]) -> Tuple[str, PatchReport]:
        """
        Reproduce an edited document from its base markup and patch log.

        Args:
            svg_text: Base document markup

        Returns:
            (patched markup, PatchReport)

        Raises:
            MalformedDocumentError: base markup cannot be parsed
        """
        document = SvgDocument.parse(svg_text)
        ensure_identities(document, self.identity_attribute)
        report = self.apply(document, patches)
        return document.serialize(), report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(raw: PatchInput, index: int) -> Optional[Patch]:
        if isinstance(raw, Patch):
            return raw
        try:
            return Patch.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid patch {index}: {e.error_count()} validation error(s)")
            return None

    def _apply_one(self, document: SvgDocument, patch: Patch, index: int) -> bool:
        handle = self.locate(document, patch.id)
        if handle is None:
            logger.warning(f"Patch {index}: no element matches {patch.id!r}")
            return False

        if patch.is_text:
            document.set_text(handle, stringify(patch.value))
            return True

        if patch.is_reorder:
            return self._reorder(document, handle, patch.value, index)

        if patch.value is None or patch.value == "":
            document.remove(handle, patch.attribute)
        elif isinstance(patch.value, ReorderTarget):
            logger.warning(f"Patch {index}: reorder target given for attribute {patch.attribute!r}")
            return False
        else:
            document.set(handle, patch.attribute, stringify(patch.value))
        return True

    def _reorder(self, document: SvgDocument, handle: int, target: Any, index: int) -> bool:
        if not isinstance(target, ReorderTarget):
            logger.warning(f"Patch {index}: reorder needs after_id or before_id")
            return False

        before = self.locate(document, target.beforeId)
        if before is not None and document.move_before(handle, before):
            return True

        after = self.locate(document, target.afterId)
        if after is not None and document.move_after(handle, after):
            return True

        logger.warning(f"Patch {index}: reorder reference missing or not a sibling")
        return False


def replay_patches(svg_text: str, patches: Iterable[PatchInput]) -> Tuple[str, PatchReport]:
    """Replay patches with a default engine"""
    return PatchEngine().replay(svg_text, list(patches))
