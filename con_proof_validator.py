"""
PROOF VALIDATOR

Trust boundary between proof systems and note registries. A proof id is
served by one registered prover key; a payload is accepted when that prover
attested to the exact proof outputs for the given submitter:

  proof_data := attestation:64 | proof_outputs

Accepted outputs are recorded per (proof id, output hash, caller) so a note
registry can later check that the output it is asked to apply was validated
by the party applying it.
"""

import con_note_codec

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

ATTESTATION_LENGTH = 64
VALIDATOR_DOMAIN = 'ZKV:v1'

def attestation_digest(proof_id: int, submitter: str, proof_outputs: str):
    return hashlib.sha3(VALIDATOR_DOMAIN + '|' + ctx.this + '|' + str(proof_id) + '|' + submitter + '|' + proof_outputs)

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# proof_id -> prover public key
provers = Hash()

# proof_id -> bool
disabled_proofs = Hash(default_value=False)

# (proof_id, proof_output_hash, sender) -> bool
validated = Hash(default_value=False)

config = Hash()

next_tx_id = Variable()

ProofValidatedEvent = LogEvent('ProofValidated', {
    'sender': {'type': str, 'idx': True},
    'proof_output_hash': {'type': str, 'idx': True},
    'proof_id': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

@construct
def seed():
    config['operator'] = ctx.caller
    next_tx_id.set(1)

# -----------------------------------------------------------------------------
# Administration
# -----------------------------------------------------------------------------

@export
def set_prover(proof_id: int, prover: str):
    assert ctx.caller == config['operator'], 'Only operator can register provers'
    assert con_note_codec.is_address(value=prover), 'Prover must be a 32 byte public key'
    provers[proof_id] = prover
    disabled_proofs[proof_id] = False

@export
def invalidate_proof(proof_id: int):
    assert ctx.caller == config['operator'], 'Only operator can invalidate proofs'
    assert provers[proof_id] is not None, 'Proof id is not registered'
    disabled_proofs[proof_id] = True

@export
def get_config():
    return {'operator': config['operator']}

# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

@export
def validate(proof_id: int, submitter: str, proof_data: str):
    prover = provers[proof_id]
    assert prover is not None, 'ProofInvalid: proof id is not supported'
    assert not disabled_proofs[proof_id], 'ProofInvalid: proof id has been invalidated'
    assert con_note_codec.is_hex(value=proof_data), 'ProofInvalid: proof data is not lowercase hex'
    assert len(proof_data) > ATTESTATION_LENGTH * 2, 'ProofInvalid: proof data is too short'

    attestation = proof_data[:ATTESTATION_LENGTH * 2]
    proof_outputs = proof_data[ATTESTATION_LENGTH * 2:]
    digest = attestation_digest(proof_id, submitter, proof_outputs)
    assert crypto.verify(prover, digest, attestation), 'ProofInvalid: prover attestation does not verify'

    tx_id = next_tx_id.get()
    for transition in con_note_codec.decode_proof_outputs(data=proof_outputs):
        validated[proof_id, transition['hash'], ctx.caller] = True
        ProofValidatedEvent({
            'sender': ctx.caller,
            'proof_output_hash': transition['hash'],
            'proof_id': proof_id,
            'tx_id': tx_id
        })
    next_tx_id.set(tx_id + 1)

    return proof_outputs

@export
def is_validated(proof_id: int, proof_output_hash: str, sender: str):
    return validated[proof_id, proof_output_hash, sender]
