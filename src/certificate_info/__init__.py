"""
certificate_info — certificate bundle and signed profile inspection service.

Decodes PKCS#12 containers into certificate records and verifies CMS
SignedData profiles before decoding their property-list payload.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
