"""
Example: Reuse Firefox cookies

Loads the cookies a Firefox profile holds for one site and sends them with
a request. Pass the Firefox data directory and the profile directory name:

    python firefox_cookies.py ~/.mozilla/firefox abcd1234.default-release example.com
"""

import sys

from tisane import Client, FirefoxCookieLoader
from tisane.errors import CookieError


def main(data_path: str, profile: str, host: str):
    with Client() as client:
        loader = FirefoxCookieLoader(client.jar, data_path=data_path, profile=profile)
        try:
            loader.load(host, "." + host)
        except CookieError as exc:
            print(f"Could not load cookies: {exc}")
            return

        print(f"Loaded cookies: {[c.name for c in client.jar.cookies(f'https://{host}')]}")
        result = client.session().with_url(f"https://{host}/").get()
        print(result.status_message)


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    main(*sys.argv[1:])
