ASSET = "con_zk_asset"
VALIDATOR = "con_proof_validator"
SCALING_FACTOR = 10


def asset_events(output, name=None):
    events = []
    for event in output["events"]:
        if event.get("contract", ASSET) != ASSET:
            continue
        if name is not None and event["event"] != name:
            continue
        payload = dict(event.get("data_indexed", {}))
        payload.update(event.get("data", {}))
        events.append((event["event"], payload))
    return events


def transfer(asset, helper, prover, sender, join_splits, *, block_num):
    proof_data = helper.build_proof_data(
        prover, VALIDATOR, helper.JOIN_SPLIT_PROOF, sender.address, join_splits
    )
    return asset.transfer(
        proof_id=helper.JOIN_SPLIT_PROOF,
        proof_data=proof_data,
        signatures="",
        signer=sender.address,
        environment={"block_num": block_num},
        return_full_output=True,
    )


def deposit(asset, registry, helper, prover, owner, output_notes, *, value, block_num=1):
    registry.mint_public(asset=ASSET, to=owner.address, amount=value * SCALING_FACTOR)
    join_split = helper.build_join_split(
        [], output_notes, public_owner=owner.address, public_value=-value
    )
    registry.public_approve(
        asset=ASSET,
        proof_output_hash=join_split["proof_output_hash"],
        amount=value,
        signer=owner.address,
    )
    return transfer(asset, helper, prover, owner, [join_split], block_num=block_num)


def test_deposit_emits_create_and_convert(asset, registry, helper_module, prover, alice):
    notes = [helper_module.make_note(alice.address), helper_module.make_note(alice.address)]

    output = deposit(asset, registry, helper_module, prover, alice, notes, value=30)

    assert [name for name, _ in asset_events(output)] == ["CreateNote", "CreateNote", "ConvertTokens"]
    created = asset_events(output, "CreateNote")
    for (_, payload), note in zip(created, notes):
        assert payload["owner"] == alice.address
        assert payload["note_hash"] == note["note_hash"]
        assert payload["metadata_hash"] == helper_module.metadata_fingerprint(note["metadata"])

    _, converted = asset_events(output, "ConvertTokens")[0]
    assert converted["owner"] == alice.address
    assert converted["value"] == 30

    tx_ids = [payload["tx_id"] for _, payload in asset_events(output)]
    assert tx_ids == sorted(tx_ids)
    assert len(set(tx_ids)) == len(tx_ids)


def test_withdrawal_emits_destroy_create_and_redeem(asset, registry, helper_module, prover, alice, carol):
    note_a = helper_module.make_note(alice.address)
    deposit(asset, registry, helper_module, prover, alice, [note_a], value=50)

    note_b = helper_module.make_note(alice.address)
    join_split = helper_module.build_join_split(
        [note_a], [note_b], public_owner=carol.address, public_value=20
    )
    output = transfer(asset, helper_module, prover, alice, [join_split], block_num=2)

    assert [name for name, _ in asset_events(output)] == ["DestroyNote", "CreateNote", "RedeemTokens"]
    _, destroyed = asset_events(output, "DestroyNote")[0]
    assert destroyed["note_hash"] == note_a["note_hash"]
    assert destroyed["owner"] == alice.address
    _, redeemed = asset_events(output, "RedeemTokens")[0]
    assert redeemed["owner"] == carol.address
    assert redeemed["value"] == 20
    assert asset_events(output, "ConvertTokens") == []


def test_zero_delta_transfer_emits_no_value_events(asset, registry, helper_module, prover, alice, bob, carol):
    note_a = helper_module.make_note(alice.address)
    note_b = helper_module.make_note(alice.address)
    deposit(asset, registry, helper_module, prover, alice, [note_a, note_b], value=10)

    outputs = [helper_module.make_note(bob.address), helper_module.make_note(carol.address)]
    join_split = helper_module.build_join_split([note_a, note_b], outputs)
    output = transfer(asset, helper_module, prover, alice, [join_split], block_num=2)

    names = [name for name, _ in asset_events(output)]
    assert names == ["DestroyNote", "DestroyNote", "CreateNote", "CreateNote"]
    assert [p["note_hash"] for _, p in asset_events(output, "DestroyNote")] == [note_a["note_hash"], note_b["note_hash"]]
    assert [p["owner"] for _, p in asset_events(output, "CreateNote")] == [bob.address, carol.address]


def test_created_note_metadata_emits_approved_address(asset, registry, helper_module, prover, alice, bob, carol):
    metadata = helper_module.encode_metadata([bob.address, carol.address])
    note = helper_module.make_note(alice.address, metadata=metadata)

    output = transfer(
        asset, helper_module, prover, alice, [helper_module.build_join_split([], [note])], block_num=1
    )

    approved = asset_events(output, "ApprovedAddress")
    assert [p["address"] for _, p in approved] == [bob.address, carol.address]
    assert all(p["note_hash"] == note["note_hash"] for _, p in approved)


def test_update_metadata_emits_events(asset, registry, helper_module, prover, alice, bob):
    note = helper_module.make_note(alice.address)
    transfer(asset, helper_module, prover, alice, [helper_module.build_join_split([], [note])], block_num=1)

    metadata = helper_module.encode_metadata([bob.address])
    output = asset.update_metadata(
        note_hash=note["note_hash"],
        metadata=metadata,
        signer=alice.address,
        environment={"block_num": 4},
        return_full_output=True,
    )

    assert [name for name, _ in asset_events(output)] == ["ApprovedAddress", "UpdateNoteMetadata"]
    _, granted = asset_events(output, "ApprovedAddress")[0]
    assert granted["address"] == bob.address
    assert granted["note_hash"] == note["note_hash"]
    _, updated = asset_events(output, "UpdateNoteMetadata")[0]
    assert updated["owner"] == alice.address
    assert updated["note_hash"] == note["note_hash"]
    assert updated["metadata_hash"] == helper_module.metadata_fingerprint(metadata)


def test_approve_emits_status(asset, registry, helper_module, prover, alice, bob):
    note = helper_module.make_note(alice.address)
    transfer(asset, helper_module, prover, alice, [helper_module.build_join_split([], [note])], block_num=1)

    granted = asset.approve(
        note_hash=note["note_hash"], spender=bob.address, approved=True, signature="",
        signer=alice.address, return_full_output=True,
    )
    revoked = asset.approve(
        note_hash=note["note_hash"], spender=bob.address, approved=False, signature="",
        signer=alice.address, return_full_output=True,
    )

    assert asset_events(granted, "ConfidentialApprove")[0][1]["status"] == "approved"
    assert asset_events(revoked, "ConfidentialApprove")[0][1]["status"] == "revoked"
    assert asset_events(revoked, "ConfidentialApprove")[0][1]["spender"] == bob.address
