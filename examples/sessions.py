"""
Example: Template sessions with interceptors

A configured Session acts as a template: every fluent call returns a clone,
so one base session can drive many requests.
"""

from tisane import Client, ClientConfig, SessionBuilder, require_status, set_random_user_agent
from tisane.log import configure_logging


def main():
    configure_logging("debug")
    config = ClientConfig(timeout=15, headers={"Accept": "application/json"})

    with Client(config) as client:
        base = (
            SessionBuilder()
            .client(client)
            .on_request(set_random_user_agent)
            .on_response(require_status(200))
            .new()
        )

        for path in ("/get", "/headers", "/status/418"):
            result = base.with_url(f"https://httpbin.org{path}").get()
            print(result.status_message)
            if result.error is not None:
                print(f"  error: {result.error}")
            else:
                print(f"  {result.text[:200]}")


if __name__ == "__main__":
    main()
