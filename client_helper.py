import hashlib
import secrets

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

# ---- Chain-constant parameters & helpers (mirror contracts) ----

ASSET_DOMAIN = "ZKA:v1"
VALIDATOR_DOMAIN = "ZKV:v1"
OUTPUT_HASH_TAG = "ZKA:proof-output|"
SIGNATURE_LOG_TAG = "ZKA:signature|"
METADATA_TAG = "ZKA:metadata|"

# proof categories
BALANCED = 1
MINT = 2
BURN = 3
UTILITY = 4

# epoch << 16 | category << 8 | id
JOIN_SPLIT_PROOF = 65793
MINT_PROOF = 66049
BURN_PROOF = 66305
PRIVATE_RANGE_PROOF = 66562

NOTE_DOES_NOT_EXIST = 0
NOTE_UNSPENT = 1
NOTE_SPENT = 2

U32 = 4
WORD = 32
SIGNATURE_LENGTH = 64
EPHEMERAL_KEY_LENGTH = 33
METADATA_HEADER_LENGTH = EPHEMERAL_KEY_LENGTH + 3 * U32
PROOF_OUTPUT_HEADER_LENGTH = U32 + U32 + WORD + WORD + WORD

ZERO_ADDRESS = "00" * WORD
EMPTY_SIGNATURE = "00" * SIGNATURE_LENGTH


def sha3_hex(s: str) -> str:
    # Matches Xian env semantics for non-hex input
    return hashlib.sha3_256(s.encode("utf-8")).hexdigest()


def proof_category(proof_id: int) -> int:
    return (proof_id >> 8) & 0xFF


def check_hex(value: str, size: int = None) -> str:
    value = value.lower()
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise ValueError(f"Not a hex string: {value!r}")
    if size is not None and len(raw) != size:
        raise ValueError(f"Expected {size} bytes, got {len(raw)}")
    return value


def encode_uint(value: int, size: int = U32) -> str:
    if value < 0 or value >= 1 << (8 * size):
        raise ValueError(f"{value} does not fit in {size} unsigned bytes")
    return value.to_bytes(size, "big").hex()


def encode_int256(value: int) -> str:
    if not -(1 << 255) <= value < (1 << 255):
        raise ValueError(f"{value} does not fit in a signed 256-bit word")
    return (value % (1 << 256)).to_bytes(WORD, "big").hex()


def length_prefixed(body: str) -> str:
    return encode_uint(len(body) // 2) + body


def random_note_hash() -> str:
    return secrets.token_hex(WORD)


def random_challenge() -> str:
    return secrets.token_hex(WORD)


def random_ephemeral_key() -> str:
    return secrets.token_hex(EPHEMERAL_KEY_LENGTH)

# ---- Metadata ----------------------------------------------------------------

def encode_metadata(approved_addresses=(),
                    ephemeral_key: str = None,
                    view_keys: str = "",
                    app_data: str = "") -> str:
    """
    Packs note metadata:
        length | ephemeral_key | addresses_offset | view_keys_offset | app_data_offset
               | count | addresses | view_keys | app_data
    With nothing but the ephemeral key, only the key is emitted, so the
    contract grants no access from it.
    """
    if ephemeral_key is None:
        ephemeral_key = random_ephemeral_key()
    key = check_hex(ephemeral_key, EPHEMERAL_KEY_LENGTH)
    view_keys = check_hex(view_keys)
    app_data = check_hex(app_data)

    if not approved_addresses and not view_keys and not app_data:
        return length_prefixed(key)

    addresses = encode_uint(len(approved_addresses)) + "".join(
        check_hex(a, WORD) for a in approved_addresses
    )
    addresses_offset = METADATA_HEADER_LENGTH
    view_keys_offset = addresses_offset + len(addresses) // 2
    app_data_offset = view_keys_offset + len(view_keys) // 2

    body = (
        key
        + encode_uint(addresses_offset)
        + encode_uint(view_keys_offset)
        + encode_uint(app_data_offset)
        + addresses
        + view_keys
        + app_data
    )
    return length_prefixed(body)


def decode_metadata(metadata: str) -> dict:
    """Wallet-side reader for metadata emitted by encode_metadata."""
    raw = bytes.fromhex(metadata)
    decoded = {"ephemeral_key": "", "approved_addresses": [], "view_keys": "", "app_data": ""}
    if len(raw) < U32:
        return decoded

    length = int.from_bytes(raw[:U32], "big")
    if U32 + length != len(raw):
        raise ValueError("Metadata length mismatch")
    body = raw[U32:]
    decoded["ephemeral_key"] = body[:EPHEMERAL_KEY_LENGTH].hex()
    if length <= METADATA_HEADER_LENGTH:
        return decoded

    offsets = [
        int.from_bytes(body[EPHEMERAL_KEY_LENGTH + i * U32:EPHEMERAL_KEY_LENGTH + (i + 1) * U32], "big")
        for i in range(3)
    ]
    addresses_offset, view_keys_offset, app_data_offset = offsets
    count = int.from_bytes(body[addresses_offset:addresses_offset + U32], "big")
    start = addresses_offset + U32
    decoded["approved_addresses"] = [
        body[start + i * WORD:start + (i + 1) * WORD].hex() for i in range(count)
    ]
    decoded["view_keys"] = body[view_keys_offset:app_data_offset].hex()
    decoded["app_data"] = body[app_data_offset:].hex()
    return decoded

# ---- Notes & proof outputs ---------------------------------------------------

def make_note(owner: str, note_hash: str = None, metadata: str = None) -> dict:
    if note_hash is None:
        note_hash = random_note_hash()
    if metadata is None:
        metadata = encode_metadata()
    return {
        'owner': check_hex(owner, WORD),
        'note_hash': check_hex(note_hash, WORD),
        'metadata': check_hex(metadata)
    }


def encode_note(note: dict) -> str:
    metadata = note.get('metadata', "")
    return length_prefixed(
        check_hex(note['owner'], WORD)
        + check_hex(note['note_hash'], WORD)
        + encode_uint(len(metadata) // 2)
        + metadata
    )


def encode_notes(notes) -> str:
    return length_prefixed(encode_uint(len(notes)) + "".join(encode_note(n) for n in notes))


def encode_proof_output(input_notes,
                        output_notes,
                        public_owner: str = None,
                        public_value: int = 0,
                        challenge: str = None) -> str:
    if challenge is None:
        challenge = random_challenge()
    if public_value != 0 and not public_owner:
        raise ValueError("A non-zero public value needs a public owner")

    inputs = encode_notes(input_notes)
    outputs = encode_notes(output_notes)
    header = (
        encode_uint(PROOF_OUTPUT_HEADER_LENGTH)
        + encode_uint(PROOF_OUTPUT_HEADER_LENGTH + len(inputs) // 2)
        + check_hex(public_owner or ZERO_ADDRESS, WORD)
        + encode_int256(public_value)
        + check_hex(challenge, WORD)
    )
    return length_prefixed(header + inputs + outputs)


def encode_proof_outputs(proof_outputs) -> str:
    if not proof_outputs:
        raise ValueError("At least one proof output is required")
    return length_prefixed(encode_uint(len(proof_outputs)) + "".join(proof_outputs))


def proof_output_hash(proof_output: str) -> str:
    return sha3_hex(OUTPUT_HASH_TAG + proof_output)

# ---- Digests -----------------------------------------------------------------

def asset_domain_hash(asset: str, *parts) -> str:
    return sha3_hex(ASSET_DOMAIN + "|" + asset + "|" + "|".join(str(x) for x in parts))


def join_split_digest(asset: str, proof_id: int, note_hash: str, challenge: str, sender: str) -> str:
    return asset_domain_hash(asset, "JoinSplitSignature", proof_id, note_hash, challenge, sender)


def approval_digest(asset: str, note_hash: str, spender: str, approved: bool, nonce: int = 0) -> str:
    return asset_domain_hash(asset, "NoteSignature", note_hash, spender, 1 if approved else 0, nonce)


def attestation_digest(validator: str, proof_id: int, submitter: str, proof_outputs: str) -> str:
    return sha3_hex(
        VALIDATOR_DOMAIN + "|" + validator + "|" + str(proof_id) + "|" + submitter + "|" + proof_outputs
    )


def signature_fingerprint(signature: str) -> str:
    return sha3_hex(SIGNATURE_LOG_TAG + signature)


def metadata_fingerprint(metadata: str) -> str:
    return sha3_hex(METADATA_TAG + metadata)

# ---- Keys --------------------------------------------------------------------

class NoteSigner:
    """
    Ed25519 key of a note owner or prover. The hex public key is the on-chain
    address; signatures are taken over the utf-8 bytes of a hex digest.
    """
    def __init__(self, seed: bytes = None):
        self.signing_key = SigningKey(seed) if seed is not None else SigningKey.generate()

    @property
    def address(self) -> str:
        return self.signing_key.verify_key.encode().hex()

    def sign(self, digest: str) -> str:
        return self.signing_key.sign(digest.encode("utf-8")).signature.hex()


def verify_signature(address: str, digest: str, signature: str) -> bool:
    try:
        VerifyKey(bytes.fromhex(address)).verify(digest.encode("utf-8"), bytes.fromhex(signature))
    except (BadSignatureError, ValueError):
        return False
    return True

# ---- High-level builders -----------------------------------------------------

def build_join_split(input_notes,
                     output_notes,
                     public_owner: str = None,
                     public_value: int = 0,
                     challenge: str = None):
    """
    Returns one proof output and the fields callers need around it:
        {proof_output, proof_output_hash, challenge, input_notes, output_notes}
    public_value < 0 deposits into the confidential pool, > 0 withdraws.
    """
    if challenge is None:
        challenge = random_challenge()
    proof_output = encode_proof_output(
        input_notes, output_notes,
        public_owner=public_owner,
        public_value=public_value,
        challenge=challenge,
    )
    return {
        'proof_output': proof_output,
        'proof_output_hash': proof_output_hash(proof_output),
        'challenge': challenge,
        'input_notes': list(input_notes),
        'output_notes': list(output_notes),
    }


def build_proof_data(prover: NoteSigner, validator: str, proof_id: int, submitter: str, join_splits) -> str:
    """
    Returns the payload for validator.validate() / asset.transfer():
        attestation | proof_outputs
    `submitter` is whoever calls validate: the user for transfer(), since the
    asset forwards its caller.
    """
    proof_outputs = encode_proof_outputs([j['proof_output'] for j in join_splits])
    attestation = prover.sign(attestation_digest(validator, proof_id, submitter, proof_outputs))
    return attestation + proof_outputs


def build_join_split_signatures(asset: str, proof_id: int, sender: str, join_splits, signers) -> str:
    """
    Concatenates one 64-byte signature per input note, in input order across
    all join splits. A None signer leaves an empty slot (sender must own it).
    """
    slots = []
    signer_iter = iter(signers)
    for join_split in join_splits:
        for note in join_split['input_notes']:
            signer = next(signer_iter)
            if signer is None:
                slots.append(EMPTY_SIGNATURE)
                continue
            digest = join_split_digest(asset, proof_id, note['note_hash'], join_split['challenge'], sender)
            slots.append(signer.sign(digest))
    return "".join(slots)


def build_confidential_approve(owner: NoteSigner,
                               asset: str,
                               note_hash: str,
                               spender: str,
                               approved: bool = True,
                               nonce: int = 0):
    """
    Returns args for contract.approve():
        (note_hash, spender, approved, signature)
    `nonce` is the note's current get_approval_nonce().
    """
    return {
        'note_hash': note_hash,
        'spender': spender,
        'approved': approved,
        'signature': owner.sign(approval_digest(asset, note_hash, spender, approved, nonce)),
    }
