"""Unit tests for FEAT parsing."""

from sockftp.ftp.features import FeatureMatrix
from sockftp.ftp.replies import parse_reply


PYFTPDLIB_FEAT = (
    "211-Features supported:\r\n"
    " EPRT\r\n"
    " EPSV\r\n"
    " MDTM\r\n"
    " MFMT\r\n"
    " MLST type*;perm*;size*;modify*;unique*;unix.mode;unix.uid;unix.gid;\r\n"
    " REST STREAM\r\n"
    " SIZE\r\n"
    " TVFS\r\n"
    " UTF8\r\n"
    "211 End FEAT.\r\n"
)


class TestFeatureMatrix:
    """Tests for FeatureMatrix.from_lines."""

    def test_pyftpdlib_reply(self):
        features = FeatureMatrix.from_lines(parse_reply(PYFTPDLIB_FEAT).lines)

        assert features.EPRT and features.EPSV and features.MDTM and features.SIZE
        assert features.UTF8 and features.TVFS and features.MFMT
        assert features.PASV is False
        assert features.PBSZ is False
        assert features.REST == ("STREAM",)
        assert features.MLST == (
            "type*", "perm*", "size*", "modify*", "unique*", "unix.mode", "unix.uid", "unix.gid"
        )
        assert features.AUTH is False

    def test_auth_on_separate_lines(self):
        features = FeatureMatrix.from_lines(["AUTH TLS", "AUTH SSL", "PBSZ", "PROT"])

        assert features.AUTH == ("TLS", "SSL")
        assert features.PBSZ and features.PROT

    def test_auth_on_one_line(self):
        assert FeatureMatrix.from_lines([" AUTH TLS SSL"]).AUTH == ("TLS", "SSL")

    def test_prefix_is_not_a_match(self):
        features = FeatureMatrix.from_lines(["MDTMX", "SIZES", "MLSTX a;b;"])

        assert features.MDTM is False
        assert features.SIZE is False
        assert features.MLST is False

    def test_mlst_without_facts(self):
        assert FeatureMatrix.from_lines(["MLST"]).MLST == ()

    def test_empty(self):
        features = FeatureMatrix.from_lines([])

        assert not any(features.to_dict().values())

    def test_supports(self):
        features = FeatureMatrix.from_lines(["MDTM", "MLST size*;"])

        assert features.supports("mdtm") is True
        assert features.supports("MLST") is True
        assert features.supports("SIZE") is False
        assert features.supports("NOPE") is False
