"""
URL Validation Utilities

This module provides start URL validation and the link normalization
helpers the crawler uses to stay on the start host.
"""

import ipaddress
import logging
import re
from typing import Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse


ALLOWED_SCHEMES = ('http', 'https')


class URLValidator:
    """
    Validates start URLs and normalizes discovered links.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # Patterns for common host formats
        self.domain_pattern = re.compile(
            r'^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*\.?$'
        )

    def validate_start_url(self, url: str) -> Tuple[bool, str, str]:
        """
        Validate a crawl start URL.

        The URL must be absolute: an http(s) scheme and a host are required.

        Args:
            url: The URL to validate

        Returns:
            Tuple of (is_valid, normalized_url, error_message)
        """
        if not url or not isinstance(url, str):
            return False, "", "URL cannot be empty"

        url = url.strip()

        try:
            parsed = urlparse(url)

            if not parsed.scheme:
                return False, "", "URL must include a scheme (http:// or https://)"
            if parsed.scheme.lower() not in ALLOWED_SCHEMES:
                return False, "", "URL must use HTTP or HTTPS protocol"
            if not parsed.netloc or not parsed.hostname:
                return False, "", "URL must have a valid host"

            if not self._is_valid_hostname(parsed.hostname):
                return False, "", "Invalid domain format"

            # Accessing .port validates it
            parsed.port

            return True, self._normalize_url(parsed), ""

        except ValueError as e:
            return False, "", f"URL validation error: {e}"

    def _is_valid_hostname(self, hostname: str) -> bool:
        try:
            ipaddress.ip_address(hostname)
            return True
        except ValueError:
            return bool(self.domain_pattern.match(hostname))

    def _normalize_url(self, parsed_url) -> str:
        """
        Normalize a parsed URL: lowercase scheme and host, drop the fragment.
        """
        scheme = parsed_url.scheme.lower()
        netloc = parsed_url.netloc.lower()
        return urlunparse((scheme, netloc, parsed_url.path, parsed_url.params, parsed_url.query, ''))

    def host_key(self, url: str) -> Optional[str]:
        """
        Extract the lowercase ``host[:port]`` of a URL, without user info.

        Args:
            url: The URL to extract the host from

        Returns:
            Host string, or None if the URL has no host or cannot be parsed
        """
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
            if not hostname:
                return None
            if ':' in hostname:
                hostname = f"[{hostname}]"
            port = parsed.port
        except ValueError:
            return None
        return f"{hostname}:{port}" if port is not None else hostname

    def is_same_host(self, url: str, host: str) -> bool:
        """Check whether ``url`` lives on ``host`` (as returned by ``host_key``)."""
        key = self.host_key(url)
        return key is not None and key == host

    def normalize_link(self, base_url: str, href: Optional[str]) -> Optional[str]:
        """
        Resolve an ``href`` against the page it was found on.

        Args:
            base_url: URL of the page containing the link
            href: Raw attribute value

        Returns:
            Absolute http(s) URL without fragment, or None when the link is
            empty, malformed or uses another scheme
        """
        if not href:
            return None
        href = href.strip()
        if not href:
            return None

        try:
            absolute, _ = urldefrag(urljoin(base_url, href))
            parsed = urlparse(absolute)
            if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
                return None
            parsed.port
        except ValueError:
            return None

        return self._normalize_url(parsed)


_singleton_validator: Optional[URLValidator] = None


def get_validator() -> URLValidator:
    """Return a singleton URLValidator instance."""
    global _singleton_validator
    if _singleton_validator is None:
        _singleton_validator = URLValidator()
    return _singleton_validator


def validate_url(url: str) -> Tuple[bool, str, str]:
    """
    Convenience wrapper used by the CLI and controller.
    Returns (is_valid, normalized_url, error_message).
    """
    return get_validator().validate_start_url(url)
