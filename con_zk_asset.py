"""
ZK ASSET

Confidential asset whose value lives in notes held by an external note
registry. Note values are hidden; owners are public.

A transfer destroys input notes and creates output notes. It is accepted when:
  - the proof validator accepts the proof payload (transfer), or the spender
    validated it beforehand (transfer_from)
  - every input note is authorised by its owner, either by a signature over
    (proof id, note hash, challenge, sender) or by a prior owner-signed
    approval of the spender
  - the note registry applies every proof output

Signatures consumed here are fingerprinted and never accepted twice.
Metadata of a note may be rewritten by its owner, or by an address whose
access grant is not older than the note's last metadata update.
"""

import con_note_codec

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

BALANCED = 1
NOTE_UNSPENT = 1
SIGNATURE_LENGTH = 64

ASSET_DOMAIN = 'ZKA:v1'
SIGNATURE_LOG_TAG = 'ZKA:signature|'
METADATA_TAG = 'ZKA:metadata|'

def domain_hash(parts: list):
    s = '|'.join([str(x) for x in parts])
    return hashlib.sha3(ASSET_DOMAIN + '|' + ctx.this + '|' + s)

def join_split_digest(proof_id: int, note_hash: str, challenge: str, sender: str):
    return domain_hash(['JoinSplitSignature', proof_id, note_hash, challenge, sender])

def approval_digest(note_hash: str, spender: str, approved: bool, nonce: int):
    return domain_hash(['NoteSignature', note_hash, spender, 1 if approved else 0, nonce])

def signature_fingerprint(signature: str):
    return hashlib.sha3(SIGNATURE_LOG_TAG + signature)

def metadata_fingerprint(metadata: str):
    return hashlib.sha3(METADATA_TAG + metadata)

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# (note_hash, spender) -> bool
approvals = Hash(default_value=False)

# signature fingerprint -> bool
signature_log = Hash(default_value=False)

# note_hash -> number of approval changes, bound into the approval digest
approval_nonces = Hash(default_value=0)

# note_hash -> block_num of last metadata write
metadata_timestamps = Hash(default_value=0)

# (address, note_hash) -> block_num of grant
access_grants = Hash()

# name / operator / collaborators
config = Hash()

# counter for events
next_tx_id = Variable()

# Events
CreateNoteEvent = LogEvent('CreateNote', {
    'owner': {'type': str, 'idx': True},
    'note_hash': {'type': str, 'idx': True},
    'metadata_hash': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

DestroyNoteEvent = LogEvent('DestroyNote', {
    'owner': {'type': str, 'idx': True},
    'note_hash': {'type': str, 'idx': True},
    'metadata_hash': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

UpdateNoteMetadataEvent = LogEvent('UpdateNoteMetadata', {
    'owner': {'type': str, 'idx': True},
    'note_hash': {'type': str, 'idx': True},
    'metadata_hash': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

ApprovedAddressEvent = LogEvent('ApprovedAddress', {
    'address': {'type': str, 'idx': True},
    'note_hash': {'type': str, 'idx': True},
    'tx_id': {'type': int, 'idx': True}
})

ConfidentialApproveEvent = LogEvent('ConfidentialApprove', {
    'note_hash': {'type': str, 'idx': True},
    'spender': {'type': str, 'idx': True},
    'status': {'type': str},
    'tx_id': {'type': int, 'idx': True}
})

ConvertTokensEvent = LogEvent('ConvertTokens', {
    'owner': {'type': str, 'idx': True},
    'value': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

RedeemTokensEvent = LogEvent('RedeemTokens', {
    'owner': {'type': str, 'idx': True},
    'value': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(note_registry: str, proof_validator: str, scaling_factor: int, name: str):
    assert scaling_factor > 0, 'Scaling factor must be positive'
    importlib.import_module(note_registry)
    importlib.import_module(proof_validator)

    config['name'] = name
    config['operator'] = ctx.caller
    config['note_registry'] = note_registry
    config['proof_validator'] = proof_validator
    config['scaling_factor'] = scaling_factor
    config['registry_created'] = False

    next_tx_id.set(1)

@export
def create_note_registry():
    assert ctx.caller == config['operator'], 'Only operator can create the note registry'
    assert not config['registry_created'], 'Note registry already created'
    registry = importlib.import_module(config['note_registry'])
    registry.create_registry(scaling_factor=config['scaling_factor'])
    config['registry_created'] = True

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_config():
    return {
        'name': config['name'],
        'operator': config['operator'],
        'note_registry': config['note_registry'],
        'proof_validator': config['proof_validator'],
        'scaling_factor': config['scaling_factor']
    }

@export
def get_note(note_hash: str):
    return fetch_note(note_hash)

@export
def is_approved(note_hash: str, spender: str):
    return approvals[note_hash, spender]

@export
def get_metadata_timestamp(note_hash: str):
    return metadata_timestamps[note_hash]

@export
def get_access_grant(address: str, note_hash: str):
    return access_grants[address, note_hash]

@export
def is_signature_used(signature: str):
    return signature_log[signature_fingerprint(signature)]

@export
def get_approval_nonce(note_hash: str):
    return approval_nonces[note_hash]

# -----------------------------------------------------------------------------
# Signature authorisation
# -----------------------------------------------------------------------------

def next_tx():
    tid = next_tx_id.get()
    next_tx_id.set(tid + 1)
    return tid

def fetch_note(note_hash: str):
    registry = importlib.import_module(config['note_registry'])
    return registry.get_note(asset=ctx.this, note_hash=note_hash)

def check_signature_format(signature: str):
    assert con_note_codec.is_hex(value=signature), 'Malformed: signature is not lowercase hex'
    assert len(signature) == 0 or len(signature) == SIGNATURE_LENGTH * 2, 'Malformed: bad signature length'

def validate_owner_signature(digest: str, note: dict, signature: str):
    # an empty signature means the submitter vouches for itself
    if signature == '':
        authorised = ctx.caller == note['owner']
    else:
        authorised = con_note_codec.is_address(value=note['owner']) and crypto.verify(note['owner'], digest, signature)
    assert authorised, 'UnauthorizedSigner: signer is not the note owner'

def consume_replay_token(signature: str):
    fingerprint = signature_fingerprint(signature)
    assert not signature_log[fingerprint], 'SignatureReplayed: signature has already been used'
    signature_log[fingerprint] = True

# -----------------------------------------------------------------------------
# Metadata access control
# -----------------------------------------------------------------------------

def approve_addresses(note_hash: str, metadata: str):
    decoded = con_note_codec.decode_metadata(data=metadata)
    for address in decoded['approved_addresses']:
        access_grants[address, note_hash] = block_num
        ApprovedAddressEvent({
            'address': address,
            'note_hash': note_hash,
            'tx_id': next_tx()
        })

@export
def update_metadata(note_hash: str, metadata: str):
    note = fetch_note(note_hash)
    assert note['status'] == NOTE_UNSPENT, 'NoteNotUnspent: only unspent notes can be updated'

    granted_at = access_grants[ctx.caller, note_hash]
    has_access = ctx.caller == note['owner'] or (
        granted_at is not None and granted_at >= metadata_timestamps[note_hash]
    )
    assert has_access, 'MetadataAccessDenied: caller may not update this note'

    approve_addresses(note_hash, metadata)
    metadata_timestamps[note_hash] = block_num

    UpdateNoteMetadataEvent({
        'owner': note['owner'],
        'note_hash': note_hash,
        'metadata_hash': metadata_fingerprint(metadata),
        'tx_id': next_tx()
    })

# -----------------------------------------------------------------------------
# Delegated approvals
# -----------------------------------------------------------------------------

@export
def approve(note_hash: str, spender: str, approved: bool, signature: str):
    """
    Grants or revokes a spender on one note. The owner signs
    (note_hash, spender, approved, nonce) where nonce is get_approval_nonce;
    it advances on every change so a re-approval after a revoke gets a new
    signature. An empty signature is accepted from the owner itself.
    Approvals are not consumed by transfer_from.
    """
    note = fetch_note(note_hash)
    assert note['status'] == NOTE_UNSPENT, 'NoteNotUnspent: only unspent notes can be approved'

    check_signature_format(signature)
    if signature != '':
        consume_replay_token(signature)
    nonce = approval_nonces[note_hash]
    validate_owner_signature(approval_digest(note_hash, spender, approved, nonce), note, signature)

    approvals[note_hash, spender] = approved
    approval_nonces[note_hash] = nonce + 1

    ConfidentialApproveEvent({
        'note_hash': note_hash,
        'spender': spender,
        'status': 'approved' if approved else 'revoked',
        'tx_id': next_tx()
    })

# -----------------------------------------------------------------------------
# Transfers
# -----------------------------------------------------------------------------

def settle_transition(proof_id: int, transition: dict, proof_sender: str):
    registry = importlib.import_module(config['note_registry'])
    registry.apply_transition(
        proof_id=proof_id,
        proof_output=transition['raw'],
        proof_sender=proof_sender
    )

    for note in transition['input_notes']:
        DestroyNoteEvent({
            'owner': note['owner'],
            'note_hash': note['note_hash'],
            'metadata_hash': metadata_fingerprint(note['metadata']),
            'tx_id': next_tx()
        })

    for note in transition['output_notes']:
        metadata_timestamps[note['note_hash']] = block_num
        approve_addresses(note['note_hash'], note['metadata'])
        CreateNoteEvent({
            'owner': note['owner'],
            'note_hash': note['note_hash'],
            'metadata_hash': metadata_fingerprint(note['metadata']),
            'tx_id': next_tx()
        })

    public_value = transition['public_value']
    if public_value < 0:
        ConvertTokensEvent({
            'owner': transition['public_owner'],
            'value': -public_value,
            'tx_id': next_tx()
        })
    elif public_value > 0:
        RedeemTokensEvent({
            'owner': transition['public_owner'],
            'value': public_value,
            'tx_id': next_tx()
        })

@export
def transfer(proof_id: int, proof_data: str, signatures: str):
    assert con_note_codec.proof_category(proof_id=proof_id) == BALANCED, 'WrongProofCategory: transfer only accepts balanced proofs'
    assert con_note_codec.is_hex(value=signatures), 'Malformed: signatures are not lowercase hex'

    validator = importlib.import_module(config['proof_validator'])
    proof_outputs = validator.validate(proof_id=proof_id, submitter=ctx.caller, proof_data=proof_data)
    transitions = con_note_codec.decode_proof_outputs(data=proof_outputs)

    total_inputs = sum([len(t['input_notes']) for t in transitions])
    assert len(signatures) == 0 or len(signatures) == total_inputs * SIGNATURE_LENGTH * 2, 'Malformed: expected one signature per input note'

    signature_index = 0
    for transition in transitions:
        for note in transition['input_notes']:
            signature = con_note_codec.extract_signature(signatures=signatures, index=signature_index)
            signature_index += 1
            if signature != '':
                consume_replay_token(signature)
            digest = join_split_digest(proof_id, note['note_hash'], transition['challenge'], ctx.caller)
            validate_owner_signature(digest, fetch_note(note['note_hash']), signature)
        settle_transition(proof_id, transition, ctx.this)

@export
def transfer_from(proof_id: int, proof_output: str):
    transition = con_note_codec.decode_proof_output(data=proof_output)
    for note in transition['input_notes']:
        assert approvals[note['note_hash'], ctx.caller], 'SpendNotApproved: spender is not approved for an input note'
    settle_transition(proof_id, transition, ctx.caller)
