"""focusgate — a forward proxy that redirects distracting hosts while you work.

A blacklisted host is redirected to a local page when block mode is on, the
current hour is inside a blocked window, or an org-mode clock is running.
"""

__version__ = "1.0.0"
