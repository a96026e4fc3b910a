"""
Unit tests for SpinRecord / SpinSnapshot parsing and lifecycle helpers
"""

import orjson
import pytest

from src.service.wheel.domain.entity.spin_record_entity import (
    MalformedSpinRecordError,
    SpinRecord,
    SpinSnapshot,
    WinnerRef,
    decode_spin_snapshot,
)
from src.service.wheel.domain.enum.retire_reason import RetireReason


class TestSpinRecord:
    def test_retire_keeps_winner_for_audit(self, make_record):
        record = make_record()

        retired = record.retire(reason=RetireReason.CONFIRMED, retired_at=record.published_at + 9)

        assert retired.is_active is False
        assert retired.winner == record.winner
        assert retired.retire_reason is RetireReason.CONFIRMED
        assert retired.retired_at == record.published_at + 9
        assert record.is_active is True  # Frozen; retire returns a copy

    def test_expired_active_record_no_longer_blocks(self, make_record):
        record = make_record(published_at=1000.0)

        assert record.blocks_new_spin(now=1299.0, ttl_seconds=300)
        assert not record.blocks_new_spin(now=1300.0, ttl_seconds=300)
        assert record.blocks_new_spin(now=99999.0, ttl_seconds=0)  # 0 disables expiry

    def test_dict_round_trip_through_json(self, make_record):
        winner = WinnerRef(id='p-3', display_name='Cy', verification_code='K7QX2M')
        record = make_record(winner=winner).retire(
            reason=RetireReason.CANCELLED, retired_at=5.0
        )

        parsed = SpinRecord.from_dict(orjson.loads(orjson.dumps(record.to_dict())))

        assert parsed == record
        assert parsed.winner.verification_code == 'K7QX2M'

    def test_winner_without_verification_code_parses_as_empty(self, make_record):
        data = make_record().to_dict()
        del data['winner']['verification_code']

        assert SpinRecord.from_dict(data).winner.verification_code == ''

    @pytest.mark.parametrize(
        'mutate',
        [
            lambda d: d.pop('spin_id'),
            lambda d: d.update(spin_id=''),
            lambda d: d.update(is_active='yes'),
            lambda d: d.update(target_angle='1575'),
            lambda d: d.update(published_at=True),
            lambda d: d.update(winner=None),  # active without winner
            lambda d: d.update(winner={'id': 'p-1'}),
            lambda d: d['winner'].update(verification_code=1234),
            lambda d: d.update(retire_reason='exploded'),
        ],
    )
    def test_malformed_records_rejected(self, make_record, mutate):
        data = make_record().to_dict()
        mutate(data)

        with pytest.raises(MalformedSpinRecordError):
            SpinRecord.from_dict(data)

    def test_inactive_record_without_winner_is_valid(self, make_record):
        data = make_record(is_active=False).to_dict()
        data['winner'] = None

        assert SpinRecord.from_dict(data).winner is None


class TestDecodeSpinSnapshot:
    def test_decodes_wire_json(self, make_record, make_snapshot):
        snapshot = make_snapshot(make_record(), server_time=42.5)

        decoded = decode_spin_snapshot(orjson.dumps(snapshot.to_dict()))

        assert decoded == snapshot

    def test_empty_session_snapshot(self):
        decoded = decode_spin_snapshot('{"record": null, "server_time": 1.0}')

        assert decoded == SpinSnapshot(record=None, server_time=1.0)

    @pytest.mark.parametrize(
        'payload',
        [b'not json', b'[]', b'{"record": null}', '{"record": 3, "server_time": 1}', 17],
    )
    def test_malformed_payloads_raise(self, payload):
        with pytest.raises(MalformedSpinRecordError):
            decode_spin_snapshot(payload)

    def test_malformed_error_is_a_value_error(self):
        # Callers that only know ValueError still catch it
        assert issubclass(MalformedSpinRecordError, ValueError)
