"""
NOTE CODEC

Stateless library contract shared by the zk asset, the note registry and the
proof validator. Decodes the hex buffers produced by proof validation and the
metadata attached to notes. Decoding is purely structural; commitments are
never inspected.

Layouts (sizes in bytes, integers big-endian, 'length' counts the bytes that
follow it, offsets are relative to the first byte after 'length'):

  proof_outputs := length:4 | count:4 | proof_output*
  proof_output  := length:4 | inputs_offset:4 | outputs_offset:4
                   | public_owner:32 | public_value:32 | challenge:32
                   | notes(inputs) | notes(outputs)
  notes         := length:4 | count:4 | note*
  note          := length:4 | owner:32 | note_hash:32 | metadata_length:4
                   | metadata
  metadata      := length:4 | ephemeral_key:33 | addresses_offset:4
                   | view_keys_offset:4 | app_data_offset:4
                   | addresses | view_keys | app_data
  addresses     := count:4 | address:32*
"""

# -----------------------------------------------------------------------------
# Parameters
# -----------------------------------------------------------------------------

U32 = 4
WORD = 32
SIGNATURE_LENGTH = 64
EPHEMERAL_KEY_LENGTH = 33

NOTE_HEADER_LENGTH = WORD + WORD + U32
PROOF_OUTPUT_HEADER_LENGTH = U32 + U32 + WORD + WORD + WORD
METADATA_HEADER_LENGTH = EPHEMERAL_KEY_LENGTH + U32 * 3

INT256_BOUND = 2**255
UINT256_MODULUS = 2**256

ZERO_ADDRESS = '0' * (WORD * 2)
ZERO_SIGNATURE = '0' * (SIGNATURE_LENGTH * 2)
HEX_CHARS = set('0123456789abcdef')

OUTPUT_HASH_TAG = 'ZKA:proof-output|'

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def hex_ok(value):
    return isinstance(value, str) and len(value) % 2 == 0 and set(value) <= HEX_CHARS

def read_bytes(data: str, position: int, size: int):
    end = (position + size) * 2
    assert position >= 0 and end <= len(data), 'Malformed: read past end of buffer'
    return data[position * 2:end]

def read_uint(data: str, position: int, size: int):
    return int(read_bytes(data, position, size), 16)

def to_signed(value: int):
    if value >= INT256_BOUND:
        return value - UINT256_MODULUS
    return value

def output_hash(raw: str):
    return hashlib.sha3(OUTPUT_HASH_TAG + raw)

def parse_notes(data: str, position: int, limit: int):
    length = read_uint(data, position, U32)
    body = position + U32
    end = body + length
    assert end <= limit, 'Malformed: notes section overruns its container'
    count = read_uint(data, body, U32)
    cursor = body + U32
    parsed = []
    for i in range(count):
        note_length = read_uint(data, cursor, U32)
        note_body = cursor + U32
        assert note_length >= NOTE_HEADER_LENGTH, 'Malformed: note shorter than its header'
        assert note_body + note_length <= end, 'Malformed: note overruns notes section'
        metadata_length = read_uint(data, note_body + WORD * 2, U32)
        assert NOTE_HEADER_LENGTH + metadata_length == note_length, 'Malformed: note length mismatch'
        parsed.append({
            'owner': read_bytes(data, note_body, WORD),
            'note_hash': read_bytes(data, note_body + WORD, WORD),
            'metadata': read_bytes(data, note_body + NOTE_HEADER_LENGTH, metadata_length)
        })
        cursor = note_body + note_length
    assert cursor == end, 'Malformed: notes section length mismatch'
    return parsed, end

def parse_proof_output(data: str, position: int, limit: int):
    length = read_uint(data, position, U32)
    body = position + U32
    end = body + length
    assert end <= limit, 'Malformed: proof output overruns its container'
    assert length >= PROOF_OUTPUT_HEADER_LENGTH, 'Malformed: proof output shorter than its header'

    inputs_offset = read_uint(data, body, U32)
    outputs_offset = read_uint(data, body + U32, U32)
    public_owner = read_bytes(data, body + U32 * 2, WORD)
    public_value = to_signed(read_uint(data, body + U32 * 2 + WORD, WORD))
    challenge = read_bytes(data, body + U32 * 2 + WORD * 2, WORD)

    assert inputs_offset == PROOF_OUTPUT_HEADER_LENGTH, 'Malformed: bad input notes offset'
    input_notes, inputs_end = parse_notes(data, body + inputs_offset, end)
    assert body + outputs_offset == inputs_end, 'Malformed: bad output notes offset'
    output_notes, outputs_end = parse_notes(data, inputs_end, end)
    assert outputs_end == end, 'Malformed: trailing bytes in proof output'

    if public_owner == ZERO_ADDRESS:
        public_owner = ''

    raw = data[position * 2:end * 2]
    return {
        'input_notes': input_notes,
        'output_notes': output_notes,
        'public_owner': public_owner,
        'public_value': public_value,
        'challenge': challenge,
        'raw': raw,
        'hash': output_hash(raw)
    }, end

# -----------------------------------------------------------------------------
# Exports
# -----------------------------------------------------------------------------

@export
def is_hex(value: str):
    return hex_ok(value)

@export
def is_address(value: str):
    return hex_ok(value) and len(value) == WORD * 2

@export
def proof_category(proof_id: int):
    return (proof_id >> 8) & 0xff

@export
def decode_proof_output(data: str):
    assert hex_ok(data), 'Malformed: proof output is not lowercase hex'
    total = len(data) // 2
    transition, end = parse_proof_output(data, 0, total)
    assert end == total, 'Malformed: trailing bytes after proof output'
    return transition

@export
def decode_proof_outputs(data: str):
    assert hex_ok(data), 'Malformed: proof outputs are not lowercase hex'
    total = len(data) // 2
    length = read_uint(data, 0, U32)
    assert U32 + length == total, 'Malformed: proof outputs length mismatch'
    count = read_uint(data, U32, U32)
    assert count > 0, 'Malformed: proof outputs are empty'
    cursor = U32 * 2
    transitions = []
    for i in range(count):
        transition, cursor = parse_proof_output(data, cursor, total)
        transitions.append(transition)
    assert cursor == total, 'Malformed: trailing bytes after proof outputs'
    return transitions

@export
def decode_metadata(data: str):
    assert hex_ok(data), 'Malformed: metadata is not lowercase hex'
    decoded = {
        'ephemeral_key': '',
        'approved_addresses': [],
        'view_keys': '',
        'app_data': ''
    }
    if len(data) < U32 * 2:
        return decoded

    length = read_uint(data, 0, U32)
    assert U32 + length == len(data) // 2, 'Malformed: metadata length mismatch'
    decoded['ephemeral_key'] = read_bytes(data, U32, min(length, EPHEMERAL_KEY_LENGTH))
    if length <= METADATA_HEADER_LENGTH:
        return decoded

    body = U32
    addresses_offset = read_uint(data, body + EPHEMERAL_KEY_LENGTH, U32)
    view_keys_offset = read_uint(data, body + EPHEMERAL_KEY_LENGTH + U32, U32)
    app_data_offset = read_uint(data, body + EPHEMERAL_KEY_LENGTH + U32 * 2, U32)
    assert addresses_offset == METADATA_HEADER_LENGTH, 'Malformed: bad approved addresses offset'
    assert view_keys_offset <= app_data_offset <= length, 'Malformed: bad metadata section offsets'

    count = read_uint(data, body + addresses_offset, U32)
    assert addresses_offset + U32 + count * WORD == view_keys_offset, 'Malformed: approved addresses overrun'
    cursor = body + addresses_offset + U32
    for i in range(count):
        decoded['approved_addresses'].append(read_bytes(data, cursor, WORD))
        cursor += WORD

    decoded['view_keys'] = read_bytes(data, body + view_keys_offset, app_data_offset - view_keys_offset)
    decoded['app_data'] = read_bytes(data, body + app_data_offset, length - app_data_offset)
    return decoded

@export
def extract_signature(signatures: str, index: int):
    if len(signatures) == 0:
        return ''
    assert index >= 0, 'Malformed: negative signature index'
    signature = read_bytes(signatures, index * SIGNATURE_LENGTH, SIGNATURE_LENGTH)
    if signature == ZERO_SIGNATURE:
        return ''
    return signature
