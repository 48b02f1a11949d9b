from tisane.client import Client
from tisane.session import Session
from tisane.models import Result
from tisane.config import (
    DEFAULT_USER_AGENT,
    ClientConfig,
    TLSConfig,
    TransportConfig,
    TransportSettings,
)
from tisane.cookies import CookieRecord, Jar, JarBuilder, NameMapping
from tisane.builder import (
    SessionBuilder,
    apply_options,
    make_session,
    new_session,
    use_client,
    use_config,
    use_cookie_jar,
    use_headers,
    use_logger,
    use_request_interceptors,
    use_response_interceptors,
    use_tls,
    use_transport,
    use_transport_config,
)
from tisane.interceptors import (
    basic_auth,
    bearer_token,
    require_content_type,
    require_status,
    set_random_user_agent,
    user_agent,
)
from tisane.loaders import CookieLoader, FirefoxCookieLoader
from tisane.log import configure_logging, get_logger, with_fields
from tisane.errors import (
    ConfigValidationError,
    ConstructionError,
    CookieError,
    InterceptorError,
    SessionStateError,
    TisaneError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "Client",
    "Session",
    "Result",
    "DEFAULT_USER_AGENT",
    "ClientConfig",
    "TLSConfig",
    "TransportConfig",
    "TransportSettings",
    "CookieRecord",
    "Jar",
    "JarBuilder",
    "NameMapping",
    "SessionBuilder",
    "apply_options",
    "make_session",
    "new_session",
    "use_client",
    "use_config",
    "use_cookie_jar",
    "use_headers",
    "use_logger",
    "use_request_interceptors",
    "use_response_interceptors",
    "use_tls",
    "use_transport",
    "use_transport_config",
    "basic_auth",
    "bearer_token",
    "require_content_type",
    "require_status",
    "set_random_user_agent",
    "user_agent",
    "CookieLoader",
    "FirefoxCookieLoader",
    "configure_logging",
    "get_logger",
    "with_fields",
    "ConfigValidationError",
    "ConstructionError",
    "CookieError",
    "InterceptorError",
    "SessionStateError",
    "TisaneError",
    "TransportError",
]
