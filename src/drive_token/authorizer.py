"""
Interactive collection of the one-time authorization code.

This is the only place the tool waits on a human. The operator opens the
authorization URL, grants access, and pastes either the code or the whole
URL the browser was redirected to.
"""

import logging
import sys
import webbrowser
from typing import Optional, TextIO
from urllib.parse import parse_qs, urlparse

from .exceptions import AuthorizationError

logger = logging.getLogger(__name__)


class ConsoleAuthorizer:
    """
    Prompts an operator on a terminal for the authorization code.

    Streams are injected so the prompt can be driven from tests.
    """

    def __init__(
        self,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
        open_browser: bool = False,
    ):
        self.input_stream = input_stream or sys.stdin
        self.output_stream = output_stream or sys.stdout
        self.open_browser = open_browser

    def prompt_for_code(self, url: str) -> str:
        """
        Show the authorization URL and wait for the operator's code.

        Blocks until a line is read; there is no timeout.

        Args:
            url: Authorization URL to visit

        Returns:
            Authorization code

        Raises:
            AuthorizationError: If input ends, is empty, or carries an error
        """
        print(f"Authorize the app by visiting this url: {url}", file=self.output_stream)

        if self.open_browser:
            try:
                webbrowser.open(url)
            except webbrowser.Error as e:
                logger.warning(f"Could not open browser: {e}")

        self.output_stream.write("Enter the code from that page here: ")
        self.output_stream.flush()

        line = self.input_stream.readline()
        if not line:
            raise AuthorizationError("No authorization code entered (input closed)")

        return extract_code(line.strip())


def extract_code(value: str) -> str:
    """
    Get the authorization code from operator input.

    Args:
        value: A bare code, or the redirect URL containing ?code=...

    Returns:
        Authorization code

    Raises:
        AuthorizationError: If no code can be found
    """
    if not value:
        raise AuthorizationError("No authorization code entered")

    parsed = urlparse(value)
    if parsed.scheme in ("http", "https") and parsed.query:
        params = parse_qs(parsed.query)
        if "error" in params:
            raise AuthorizationError(f"Authorization denied: {params['error'][0]}")
        codes = params.get("code")
        if not codes or not codes[0]:
            raise AuthorizationError("Redirect URL does not contain an authorization code")
        return codes[0]

    return value
