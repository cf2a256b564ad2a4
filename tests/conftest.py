import hashlib
import importlib.util
from pathlib import Path

import contracting
import pytest
from contracting.client import ContractingClient
from contracting.compilation import whitelists

PROJECT_ROOT = Path(__file__).resolve().parents[1]
HELPER_PATH = PROJECT_ROOT / "client_helper.py"
SUBMISSION_PATH = (
    Path(contracting.__file__).resolve().parent / "contracts" / "submission.s.py"
)

CODEC = "con_note_codec"
VALIDATOR = "con_proof_validator"
REGISTRY = "con_note_registry"
ASSET = "con_zk_asset"
SCALING_FACTOR = 10


@pytest.fixture(scope="session", autouse=True)
def enable_sha3_and_whitelist():
    whitelists.ALLOWED_BUILTINS.update({"hashlib", "importlib"})

    if not hasattr(hashlib, "sha3"):
        def _sha3(data):
            if isinstance(data, str):
                data = data.encode("utf-8")
            return hashlib.sha3_256(data).hexdigest()

        setattr(hashlib, "sha3", _sha3)


@pytest.fixture(scope="session")
def helper_module():
    spec = importlib.util.spec_from_file_location("client_helper_tests", HELPER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def client():
    client = ContractingClient(signer="operator", metering=False)
    client.flush()
    client.set_submission_contract(str(SUBMISSION_PATH))
    return client


def submit(client, name, constructor_args=None):
    code = (PROJECT_ROOT / f"{name}.py").read_text()
    client.submit(code, name=name, owner=None, constructor_args=constructor_args or {})
    return client.get_contract(name)


@pytest.fixture
def codec(client):
    return submit(client, CODEC)


@pytest.fixture
def validator(client, codec):
    return submit(client, VALIDATOR)


@pytest.fixture
def registry(client, validator):
    return submit(client, REGISTRY, {"proof_validator": VALIDATOR})


@pytest.fixture
def asset(client, registry):
    contract = submit(
        client,
        ASSET,
        {
            "note_registry": REGISTRY,
            "proof_validator": VALIDATOR,
            "scaling_factor": SCALING_FACTOR,
            "name": "Confidential Note Asset",
        },
    )
    contract.create_note_registry()
    return contract


@pytest.fixture
def prover(helper_module, validator):
    signer = helper_module.NoteSigner(b"\x01" * 32)
    validator.set_prover(proof_id=helper_module.JOIN_SPLIT_PROOF, prover=signer.address)
    return signer


@pytest.fixture
def alice(helper_module):
    return helper_module.NoteSigner(b"\x0a" * 32)


@pytest.fixture
def bob(helper_module):
    return helper_module.NoteSigner(b"\x0b" * 32)


@pytest.fixture
def carol(helper_module):
    return helper_module.NoteSigner(b"\x0c" * 32)
