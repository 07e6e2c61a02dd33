"""FTP protocol module for sockftp.

This module handles all FTP-related functionality:
- FTPClient: Session with ordered command execution
- ReplyReader: Reply framing and parsing
- FeatureMatrix: FEAT capability discovery
- DataChannelNegotiator: PASV/EPSV data connections
- FileTransfer: File transfers with progress reporting
- Exceptions: FTP-specific error types
"""
