"""
Unit tests for the duty slip lifecycle
"""

import pytest

from errors import ConflictError, NotFoundError, PayloadError, TransitionError, ValidationError
from models import AuditLog, DutySlip, DutySlipStatus


def close_payload(slip, **overrides):
    """Driver close-out for a slip created by DutySlipFactory"""
    payload = {
        'DS_No': slip.ds_no, 'Version': slip.version, 'Status': 'Closed by Driver',
        'Driver_Time_In': '20:00', 'Driver_Km_In': '1250', 'Time_In': '19:30', 'Km_In': '1245',
    }
    payload.update(overrides)
    return payload


class TestCreateDutySlip:

    def test_first_slip_gets_1001(self, services, duty_slip_payload):
        assert services.duty_slips.get_next_id() == 1001
        record = services.duty_slips.create_slip(duty_slip_payload)
        assert record['DS_No'] == '1001'
        assert record['Status'] == 'New'
        assert record['Version'] == 1
        assert services.duty_slips.get_next_id() == 1002

    def test_next_id_follows_highest(self, services, slip_factory):
        slip_factory(ds_no=1500)
        assert services.duty_slips.get_next_id() == 1501

    def test_round_trip_preserves_fields(self, services, duty_slip_payload):
        record = services.duty_slips.create_slip(duty_slip_payload)
        fetched = services.duty_slips.get_slip_record(record['DS_No'])
        for key, value in duty_slip_payload.items():
            assert fetched[key] == value, key

    def test_directory_fills_driver_mobile(self, services, duty_slip_payload):
        record = services.duty_slips.create_slip(duty_slip_payload)
        assert record['Driver_Mobile'] == '9876500001'

    def test_explicit_driver_mobile_kept(self, services, duty_slip_payload):
        duty_slip_payload['Driver_Mobile'] = '9000000001'
        record = services.duty_slips.create_slip(duty_slip_payload)
        assert record['Driver_Mobile'] == '9000000001'

    def test_server_computes_totals(self, services, duty_slip_payload):
        duty_slip_payload.update({'Driver_Time_In': '15:30', 'Driver_Km_In': '1120.5',
                                  'Driver_Total_Hrs': '99 hrs 0 mins'})
        record = services.duty_slips.create_slip(duty_slip_payload)
        assert record['Driver_Total_Hrs'] == '8 hrs 0 mins'
        assert record['Driver_Total_Kms'] == '120.5 Kms'
        assert record['Total_Days'] == '1'

    def test_client_total_ignored_without_readings(self, services, duty_slip_payload):
        duty_slip_payload.update({'Driver_Km_In': '', 'Driver_Total_Kms': '999.0 Kms'})
        record = services.duty_slips.create_slip(duty_slip_payload)
        assert record['Driver_Total_Kms'] == ''
        assert record['Driver_Total_Hrs'] == ''

    def test_duplicate_ds_no_conflicts(self, services, duty_slip, duty_slip_payload):
        duty_slip_payload['DS_No'] = str(duty_slip.ds_no)
        with pytest.raises(ConflictError):
            services.duty_slips.create_slip(duty_slip_payload)

    def test_status_other_than_new_rejected(self, services, duty_slip_payload):
        duty_slip_payload['Status'] = 'Closed by Client'
        with pytest.raises(TransitionError):
            services.duty_slips.create_slip(duty_slip_payload)
        assert DutySlip.query.count() == 0

    def test_window_violation_blocks_write(self, services, duty_slip_payload):
        duty_slip_payload['Time_Out'] = '07:00'
        with pytest.raises(ValidationError) as excinfo:
            services.duty_slips.create_slip(duty_slip_payload)
        assert 'Time_Out' in excinfo.value.fields
        assert DutySlip.query.count() == 0

    def test_malformed_signature_rejected(self, services, duty_slip_payload):
        duty_slip_payload['Auth_Signature_Link'] = 'data:image/png;base64,not-really-base64!!'
        with pytest.raises(PayloadError):
            services.duty_slips.create_slip(duty_slip_payload)
        assert DutySlip.query.count() == 0

    def test_create_is_audited(self, services, duty_slip_payload):
        services.duty_slips.create_slip(duty_slip_payload)
        audit = AuditLog.query.filter_by(entity_type='duty_slip').one()
        assert audit.action == 'duty_slip_created'
        assert audit.actor_role == 'manager'


class TestListDutySlips:

    def test_newest_first_with_filters(self, services, slip_factory):
        slip_factory(ds_no=1001, status=DutySlipStatus.NEW)
        slip_factory(ds_no=1002, status=DutySlipStatus.CLOSED_BY_DRIVER)
        slip_factory(ds_no=1003, status=DutySlipStatus.CLOSED_BY_CLIENT)
        slip_factory(ds_no=1004, status=DutySlipStatus.UPDATED_BY_MANAGER)

        assert [s['DS_No'] for s in services.duty_slips.list_slips()] == ['1004', '1003', '1002', '1001']
        assert [s['DS_No'] for s in services.duty_slips.list_slips('Needs Action')] == ['1004', '1001']
        assert [s['DS_No'] for s in services.duty_slips.list_slips('Pending')] == ['1002']
        assert [s['DS_No'] for s in services.duty_slips.list_slips('Completed')] == ['1003']
        assert [s['DS_No'] for s in services.duty_slips.list_slips('Closed by Driver')] == ['1002']

    def test_search_by_guest_or_number(self, services, slip_factory):
        slip_factory(ds_no=2001, guest_name='Meera Iyer')
        slip_factory(ds_no=2002, guest_name='John Mathew')
        assert [s['DS_No'] for s in services.duty_slips.list_slips(search='meera')] == ['2001']
        assert [s['DS_No'] for s in services.duty_slips.list_slips(search='2002')] == ['2002']

    def test_summary_fields(self, services, duty_slip):
        summary = services.duty_slips.list_slips()[0]
        assert set(summary) == {'DS_No', 'Date', 'Guest_Name', 'Driver_Name', 'Routing', 'Status'}

    def test_unknown_filter(self, services):
        with pytest.raises(ValidationError):
            services.duty_slips.list_slips('Archived')


@pytest.mark.workflow
class TestUpdateDutySlip:

    def test_manager_edit(self, services, duty_slip):
        record = services.duty_slips.update_slip({
            'DS_No': duty_slip.ds_no, 'Version': 1, 'Spl_Instruction': 'Child seat needed',
        })
        assert record['Status'] == 'Updated by Manager'
        assert record['Spl_Instruction'] == 'Child seat needed'
        assert record['Version'] == 2

    def test_stale_version_rejected(self, services, duty_slip):
        services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Version': 1, 'Routing': 'Chennai - Vellore'})
        with pytest.raises(ConflictError):
            services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Version': 1, 'Routing': 'Chennai - Salem'})
        assert services.duty_slips.get_slip(duty_slip.ds_no).routing == 'Chennai - Vellore'

    def test_missing_version_rejected(self, services, duty_slip):
        with pytest.raises(ValidationError):
            services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Routing': 'x'})

    def test_unknown_slip(self, services):
        with pytest.raises(NotFoundError):
            services.duty_slips.update_slip({'DS_No': '9999', 'Version': 1})

    def test_driver_close(self, services, duty_slip):
        record = services.duty_slips.update_slip(close_payload(duty_slip))
        assert record['Status'] == 'Closed by Driver'
        assert record['Driver_Total_Hrs'] == '12 hrs 0 mins'
        assert record['Driver_Total_Kms'] == '250.0 Kms'

    def test_overnight_driver_close_on_same_date(self, services, slip_factory):
        slip = slip_factory(driver_time_out='22:00', time_out='22:30')
        record = services.duty_slips.update_slip(close_payload(slip, Driver_Time_In='06:00', Time_In='05:30'))
        assert record['Status'] == 'Closed by Driver'
        assert record['Driver_Total_Hrs'] == '8 hrs 0 mins'
        assert record['Total_Days'] == '1'

    def test_clearing_readings_blanks_totals(self, services, closed_slip):
        record = services.duty_slips.update_slip({
            'DS_No': closed_slip.ds_no, 'Version': 1, 'Driver_Km_In': '', 'Driver_Time_In': '',
        })
        assert record['Status'] == 'Updated by Manager'
        assert record['Driver_Total_Kms'] == ''
        assert record['Driver_Total_Hrs'] == ''

    def test_manager_cannot_write_totals(self, services, closed_slip):
        record = services.duty_slips.update_slip({
            'DS_No': closed_slip.ds_no, 'Version': 1, 'Driver_Total_Kms': '10.0 Kms',
        })
        assert record['Driver_Total_Kms'] == '250.0 Kms'

    def test_driver_close_ignores_fields_outside_its_set(self, services, duty_slip):
        payload = close_payload(duty_slip, Guest_Name='Someone Else', Vehicle_No='KA01ZZ9999')
        record = services.duty_slips.update_slip(payload)
        assert record['Guest_Name'] == duty_slip.guest_name
        assert record['Vehicle_No'] == 'TN09AB1234'

    def test_driver_close_requires_closing_readings(self, services, duty_slip):
        with pytest.raises(ValidationError) as excinfo:
            services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Version': 1, 'Status': 'Closed by Driver'})
        assert set(excinfo.value.fields) == {'Driver_Time_In', 'Driver_Km_In'}

    def test_driver_cannot_close_twice(self, services, closed_slip):
        with pytest.raises(TransitionError):
            services.duty_slips.update_slip(close_payload(closed_slip))

    def test_client_close_requires_signature(self, services, closed_slip):
        with pytest.raises(ValidationError):
            services.duty_slips.update_slip({'DS_No': closed_slip.ds_no, 'Version': 1, 'Status': 'Closed by Client'})

    def test_client_close_with_signature(self, services, closed_slip, signature_data_url):
        record = services.duty_slips.update_slip({
            'DS_No': closed_slip.ds_no, 'Version': 1, 'Status': 'Closed by Client',
            'Guest_Signature_Link': signature_data_url,
        })
        assert record['Status'] == 'Closed by Client'
        assert record['Guest_Signature_Link'] == signature_data_url

    def test_closed_by_client_is_terminal(self, services, slip_factory):
        slip = slip_factory(closed_by_driver=True, status=DutySlipStatus.CLOSED_BY_CLIENT)
        for status in (None, 'Updated by Manager', 'Closed by Driver', 'Closed by Client'):
            payload = {'DS_No': slip.ds_no, 'Version': 1, 'Routing': 'x'}
            if status:
                payload['Status'] = status
            with pytest.raises(TransitionError):
                services.duty_slips.update_slip(payload)

    def test_cannot_move_back_to_new(self, services, duty_slip):
        with pytest.raises(TransitionError):
            services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Version': 1, 'Status': 'New'})

    def test_merged_record_is_validated(self, services, duty_slip):
        with pytest.raises(ValidationError) as excinfo:
            services.duty_slips.update_slip(close_payload(duty_slip, Driver_Km_In='900', Km_In=''))
        assert 'Driver_Km_In' in excinfo.value.fields

    def test_notifications_sent_after_commit(self, services, duty_slip, twilio_client):
        services.duty_slips.update_slip(close_payload(duty_slip))
        body = twilio_client.messages.create.call_args.kwargs['body']
        assert f"#{duty_slip.ds_no}" in body
        assert twilio_client.messages.create.call_args.kwargs['to'] == 'whatsapp:+918883451668'

    def test_notification_failure_does_not_fail_update(self, services, duty_slip, twilio_client):
        twilio_client.messages.create.side_effect = RuntimeError('Twilio down')
        record = services.duty_slips.update_slip(close_payload(duty_slip))
        assert record['Status'] == 'Closed by Driver'


class TestShareLinks:

    def test_links(self, services, duty_slip):
        links = services.duty_slips.get_share_links(duty_slip.ds_no)
        assert links['driver'].startswith('https://wa.me/919876500001?text=')
        assert links['guest_sign'].startswith('https://wa.me/919876543210?text=')
        assert links['view'] == f"https://admin.example.com/view.html?id={duty_slip.ds_no}"


def test_audit_history_follows_lifecycle(services, duty_slip):
    from services.audit_service import AuditService

    services.duty_slips.update_slip({'DS_No': duty_slip.ds_no, 'Version': 1, 'Routing': 'Chennai - Vellore'})
    services.duty_slips.update_slip(close_payload(duty_slip, Version=2))

    history = AuditService.get_entity_history('duty_slip', duty_slip.ds_no)
    assert [entry.actor_role for entry in history] == ['driver', 'manager']
