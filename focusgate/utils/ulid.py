"""Request ID generation for focusgate.

Every proxied request gets a ULID that is returned to the client as
``X-Focusgate-Request-ID`` and bound into the structured log context.
Uses the ``python-ulid`` library; do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Example::

        request_id = generate_ulid()
        assert len(request_id) == 26
    """
    return str(ULID())
