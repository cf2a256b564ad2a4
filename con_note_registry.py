"""
NOTE REGISTRY

Holds the notes of every zk asset that created a registry here, keyed by the
asset contract name. Notes move DOES_NOT_EXIST -> UNSPENT -> SPENT exactly
once. A registry only applies proof outputs that the proof validator recorded
for the sender the asset names.

Public value crossing the confidential boundary is settled against a per-asset
public ledger:
  - public_value < 0: value enters the pool from the public owner, who must
    have approved this exact proof output
  - public_value > 0: value leaves the pool to the public owner
Amounts are scaled by the registry's scaling factor.
"""

import con_note_codec

# -----------------------------------------------------------------------------
# Parameters
# -----------------------------------------------------------------------------

DOES_NOT_EXIST = 0
UNSPENT = 1
SPENT = 2

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# asset -> {'scaling_factor': int}
registries = Hash()

# (asset, note_hash) -> {'status': int, 'owner': str}
notes = Hash()

# (asset, account) -> int
public_balances = Hash(default_value=0)

# asset -> int
pools = Hash(default_value=0)

# (asset, owner, proof_output_hash) -> int
public_approvals = Hash(default_value=0)

config = Hash()

next_tx_id = Variable()

CreateNoteRegistryEvent = LogEvent('CreateNoteRegistry', {
    'asset': {'type': str, 'idx': True},
    'scaling_factor': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

PublicApproveEvent = LogEvent('PublicApprove', {
    'asset': {'type': str, 'idx': True},
    'owner': {'type': str, 'idx': True},
    'proof_output_hash': {'type': str},
    'amount': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

@construct
def seed(proof_validator: str):
    config['operator'] = ctx.caller
    config['proof_validator'] = proof_validator
    next_tx_id.set(1)

def next_tx():
    tid = next_tx_id.get()
    next_tx_id.set(tid + 1)
    return tid

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_config():
    return {
        'operator': config['operator'],
        'proof_validator': config['proof_validator']
    }

@export
def get_registry(asset: str):
    return registries[asset]

@export
def get_note(asset: str, note_hash: str):
    # only owner and status are stored; the note hash fills the commitment slot
    stored = notes[asset, note_hash]
    if stored is None:
        return {'status': DOES_NOT_EXIST, 'owner': '', 'note_hash': note_hash, 'commitment': note_hash}
    return {'status': stored['status'], 'owner': stored['owner'], 'note_hash': note_hash, 'commitment': note_hash}

@export
def get_public_balance(asset: str, account: str):
    return public_balances[asset, account]

@export
def get_pool_balance(asset: str):
    return pools[asset]

@export
def get_public_approval(asset: str, owner: str, proof_output_hash: str):
    return public_approvals[asset, owner, proof_output_hash]

# -----------------------------------------------------------------------------
# Public ledger
# -----------------------------------------------------------------------------

@export
def mint_public(asset: str, to: str, amount: int):
    assert ctx.caller == config['operator'], 'Only operator can mint public balance'
    assert amount > 0, 'Amount must be positive'
    public_balances[asset, to] += amount

@export
def public_approve(asset: str, proof_output_hash: str, amount: int):
    assert amount >= 0, 'Amount must not be negative'
    public_approvals[asset, ctx.caller, proof_output_hash] = amount
    PublicApproveEvent({
        'asset': asset,
        'owner': ctx.caller,
        'proof_output_hash': proof_output_hash,
        'amount': amount,
        'tx_id': next_tx()
    })

# -----------------------------------------------------------------------------
# Registry updates
# -----------------------------------------------------------------------------

@export
def create_registry(scaling_factor: int):
    assert registries[ctx.caller] is None, 'Note registry already exists'
    assert scaling_factor > 0, 'Scaling factor must be positive'
    registries[ctx.caller] = {'scaling_factor': scaling_factor}
    CreateNoteRegistryEvent({
        'asset': ctx.caller,
        'scaling_factor': scaling_factor,
        'tx_id': next_tx()
    })

def destroy_note(asset: str, note: dict):
    stored = notes[asset, note['note_hash']]
    assert stored is not None and stored['status'] == UNSPENT, 'RegistryUpdateFailed: input note is not unspent'
    assert stored['owner'] == note['owner'], 'RegistryUpdateFailed: input note owner mismatch'
    notes[asset, note['note_hash']] = {'status': SPENT, 'owner': stored['owner']}

def create_note(asset: str, note: dict):
    assert notes[asset, note['note_hash']] is None, 'RegistryUpdateFailed: output note already exists'
    assert con_note_codec.is_address(value=note['owner']), 'RegistryUpdateFailed: output note owner is not an address'
    notes[asset, note['note_hash']] = {'status': UNSPENT, 'owner': note['owner']}

def settle_public_value(asset: str, scaling_factor: int, transition: dict):
    public_value = transition['public_value']
    if public_value == 0:
        return
    public_owner = transition['public_owner']
    assert public_owner != '', 'RegistryUpdateFailed: public value requires a public owner'

    if public_value < 0:
        amount = -public_value * scaling_factor
        approved = public_approvals[asset, public_owner, transition['hash']]
        assert approved >= -public_value, 'RegistryUpdateFailed: public owner has not approved this deposit'
        assert public_balances[asset, public_owner] >= amount, 'RegistryUpdateFailed: insufficient public balance'
        public_approvals[asset, public_owner, transition['hash']] = approved + public_value
        public_balances[asset, public_owner] -= amount
        pools[asset] += amount
    else:
        amount = public_value * scaling_factor
        assert pools[asset] >= amount, 'RegistryUpdateFailed: insufficient pooled balance'
        pools[asset] -= amount
        public_balances[asset, public_owner] += amount

@export
def apply_transition(proof_id: int, proof_output: str, proof_sender: str):
    asset = ctx.caller
    registry = registries[asset]
    assert registry is not None, 'RegistryUpdateFailed: caller has no note registry'

    transition = con_note_codec.decode_proof_output(data=proof_output)
    validator = importlib.import_module(config['proof_validator'])
    assert validator.is_validated(
        proof_id=proof_id,
        proof_output_hash=transition['hash'],
        sender=proof_sender
    ), 'RegistryUpdateFailed: proof output has not been validated'

    for note in transition['input_notes']:
        destroy_note(asset, note)
    for note in transition['output_notes']:
        create_note(asset, note)
    settle_public_value(asset, registry['scaling_factor'], transition)
