"""sockftp: asynchronous FTP and FTPS client.

Subpackages:
- ftp: Session, reply/listing parsers, data channel negotiation
- config: Persisted settings and keyring credentials
- utils: Logging with credential redaction, input validators
"""

__version__ = "1.0.0"
