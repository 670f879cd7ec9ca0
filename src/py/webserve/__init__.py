from .http.model import (
	HTTPRequest,
	HTTPResponse,
	HTTPRequestError,
)  # NOQA: F401
from .decorators import on  # NOQA: F401
from .server import run  # NOQA: F401
from .model import Application, Service, mount  # NOQA: F401
from .config import ConfigError, ServerConfig  # NOQA: F401
from .redirects import Redirect, RedirectTable  # NOQA: F401
from .services.responder import Responder  # NOQA: F401
from .services.assets import AssetsService  # NOQA: F401


# EOF
