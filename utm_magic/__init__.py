"""UTM Content Magic: attribution tracking and content personalization.

The server side (FastAPI app, Rule Store and Event Store access) lives in
`utm_magic.main`, `utm_magic.api`, `utm_magic.core` and `utm_magic.crud`.
The embeddable client engine lives in `utm_magic.client` and talks to the
host page only through the capabilities it is handed.
"""

__version__ = "0.1.0"
