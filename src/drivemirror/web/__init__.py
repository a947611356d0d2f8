from .api import get_mirror, parse_tag_names, router, set_mirror
from .main import build_app
from .principal import PRINCIPAL_HEADER, acting_as, principal_from_header, request_principal

__all__ = [
    "PRINCIPAL_HEADER",
    "acting_as",
    "build_app",
    "get_mirror",
    "parse_tag_names",
    "principal_from_header",
    "request_principal",
    "router",
    "set_mirror",
]
