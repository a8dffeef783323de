from importlib.metadata import PackageNotFoundError, version

from talksource.config import LocatorConfig, default_config
from talksource.edit import modify_section_context
from talksource.locate.comments import locate_comment
from talksource.locate.sections import locate_section
from talksource.masking import MaskedText, TextMasker
from talksource.models import (
    CommentFingerprint,
    CommentSource,
    CommentTarget,
    SectionAction,
    SectionSource,
    SectionTarget,
    Signature,
)
from talksource.signatures import extract_signatures

try:
    __version__ = version("talksource")
except PackageNotFoundError:
    # Running from a source checkout without installation
    __version__ = "0.0.0-dev"

__all__ = [
    "TextMasker",
    "MaskedText",
    "LocatorConfig",
    "default_config",
    "extract_signatures",
    "locate_section",
    "locate_comment",
    "modify_section_context",
    "Signature",
    "CommentFingerprint",
    "SectionTarget",
    "SectionSource",
    "CommentTarget",
    "CommentSource",
    "SectionAction",
    "__version__",
]
