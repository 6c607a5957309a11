"""Certificate-mode trust environment and gateway certificate rotation."""

import threading

import pytest

from paykernel.common.errors import BadCertError, ConfigurationError
from paykernel.crypto.cert_env import CertEnvironment
from paykernel.crypto.pki import get_cert_sn, get_root_cert_sn

from conftest import issue_certificate


@pytest.fixture
def env(cert_files):
    return CertEnvironment(cert_files["merchant"], cert_files["gateway"], cert_files["root"])


class TestConstruction:

    def test_serial_numbers(self, env, merchant_cert, root_ca):
        assert env.get_merchant_cert_sn() == get_cert_sn(merchant_cert.cert)
        assert env.get_root_cert_sn() == get_root_cert_sn([root_ca.cert])

    @pytest.mark.parametrize("missing", ["merchant", "gateway", "root"])
    def test_partial_paths(self, cert_files, missing):
        paths = dict(cert_files)
        paths[missing] = None
        with pytest.raises(ConfigurationError):
            CertEnvironment(paths["merchant"], paths["gateway"], paths["root"])

    def test_unreadable_file(self, cert_files, tmp_path):
        with pytest.raises(BadCertError):
            CertEnvironment(cert_files["merchant"], tmp_path / "nope.crt", cert_files["root"])

    def test_gateway_not_under_root(self, cert_files, rogue_gateway_cert):
        cert_files["gateway"].write_bytes(rogue_gateway_cert.cert_pem)
        with pytest.raises(BadCertError):
            CertEnvironment(cert_files["merchant"], cert_files["gateway"], cert_files["root"])

    def test_from_bytes(self, merchant_cert, gateway_cert, root_ca):
        env = CertEnvironment.from_bytes(merchant_cert.cert_pem, gateway_cert.cert_pem, root_ca.cert_pem)
        assert env.known_serial_numbers() == [get_cert_sn(gateway_cert.cert)]

    def test_from_bytes_incomplete(self, merchant_cert, root_ca):
        with pytest.raises(ConfigurationError):
            CertEnvironment.from_bytes(merchant_cert.cert_pem, b"", root_ca.cert_pem)


class TestLookup:

    def test_known_serial(self, env, gateway_cert):
        sn = get_cert_sn(gateway_cert.cert)
        assert env.get_gateway_public_key(sn) == gateway_cert.public_key_pem

    def test_unknown_serial_is_absent(self, env):
        assert env.get_gateway_public_key("0" * 32) is None

    def test_empty_serial_uses_startup_cert(self, env, gateway_cert):
        assert env.get_gateway_public_key(None) == gateway_cert.public_key_pem
        assert env.get_gateway_public_key("") == gateway_cert.public_key_pem


class TestRotation:

    def test_admit_rotated_cert(self, env, gateway_cert, rotated_gateway_cert):
        sn = env.admit_certificate(rotated_gateway_cert.cert_pem)
        assert sn == get_cert_sn(rotated_gateway_cert.cert)
        assert env.get_gateway_public_key(sn) == rotated_gateway_cert.public_key_pem
        # the previous certificate stays trusted and remains the default
        assert env.get_gateway_public_key(get_cert_sn(gateway_cert.cert)) == gateway_cert.public_key_pem
        assert env.get_gateway_public_key(None) == gateway_cert.public_key_pem

    def test_admit_is_idempotent(self, env, gateway_cert):
        env.admit_certificate(gateway_cert.cert_pem)
        assert len(env.known_serial_numbers()) == 1

    def test_rogue_rejected_and_mapping_unchanged(self, env, rogue_gateway_cert):
        before = env.known_serial_numbers()
        with pytest.raises(BadCertError):
            env.admit_certificate(rogue_gateway_cert.cert_pem)
        assert env.known_serial_numbers() == before
        assert env.get_gateway_public_key(get_cert_sn(rogue_gateway_cert.cert)) is None

    def test_admit_with_intermediate(self, env, root_ca):
        intermediate = issue_certificate("Gateway Intermediate CA", root_ca, is_ca=True)
        leaf = issue_certificate("Gateway Leaf", intermediate)
        sn = env.admit_certificate(leaf.cert_pem + intermediate.cert_pem)
        assert env.get_gateway_public_key(sn) == leaf.public_key_pem

    def test_reload_from_file(self, env, cert_files, rotated_gateway_cert):
        cert_files["gateway"].write_bytes(rotated_gateway_cert.cert_pem)
        sn = env.reload_gateway_cert()
        assert sn == get_cert_sn(rotated_gateway_cert.cert)
        assert sn in env.known_serial_numbers()

    def test_reload_without_path(self, merchant_cert, gateway_cert, root_ca):
        env = CertEnvironment.from_bytes(merchant_cert.cert_pem, gateway_cert.cert_pem, root_ca.cert_pem)
        with pytest.raises(ConfigurationError):
            env.reload_gateway_cert()

    def test_lookups_during_admission(self, env, root_ca, gateway_cert):
        startup_sn = get_cert_sn(gateway_cert.cert)
        new_certs = [issue_certificate(f"Gateway {i}", root_ca) for i in range(4)]
        errors = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                if env.get_gateway_public_key(startup_sn) != gateway_cert.public_key_pem:
                    errors.append("startup key lost")
                for sn in env.known_serial_numbers():
                    if env.get_gateway_public_key(sn) is None:
                        errors.append(f"listed {sn} but not resolvable")

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writers = [threading.Thread(target=env.admit_certificate, args=(c.cert_pem,)) for c in new_certs]
        for t in writers:
            t.start()
        for t in writers:
            t.join()
        stop.set()
        for t in readers:
            t.join()

        assert errors == []
        assert len(env.known_serial_numbers()) == 5
