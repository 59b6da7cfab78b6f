"""
Integration tests for the /api action endpoint
"""

import json
from unittest.mock import patch

import pytest


def post(client, action, payload):
    return client.post(f'/api?action={action}', data=json.dumps(payload), content_type='application/json')


@pytest.mark.integration
class TestDispatch:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'

    def test_unknown_action(self, client):
        response = client.get('/api?action=dropTables')
        assert response.status_code == 400
        assert response.get_json() == {
            'success': False, 'error': "Invalid action: 'dropTables'.", 'code': 'UNKNOWN_ACTION',
        }

    def test_missing_action(self, client):
        response = client.post('/api', data='{}', content_type='application/json')
        assert response.status_code == 400
        assert response.get_json()['code'] == 'UNKNOWN_ACTION'

    def test_wrong_method(self, client):
        response = client.get('/api?action=saveDutySlip')
        assert response.status_code == 400
        assert 'POST' in response.get_json()['error']

    @pytest.mark.parametrize('body', ['{not json', '[1, 2, 3]', ''])
    def test_bad_body(self, client, body):
        response = client.post('/api?action=saveDutySlip', data=body, content_type='application/json')
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_PAYLOAD'

    def test_missing_query_parameter(self, client):
        response = client.get('/api?action=getDutySlipById')
        assert response.status_code == 400
        body = response.get_json()
        assert body['code'] == 'VALIDATION_ERROR'
        assert body['fields'] == {'id': 'Required'}

    def test_unexpected_error_is_hidden(self, client, services):
        with patch.object(services.duty_slips, 'get_next_id', side_effect=RuntimeError('db exploded')):
            response = client.get('/api?action=getNextDutySlipId')
        assert response.status_code == 500
        body = response.get_json()
        assert body['code'] == 'INTERNAL_ERROR'
        assert 'exploded' not in body['error']


@pytest.mark.integration
class TestDutySlipApi:

    def test_save_then_fetch(self, client, duty_slip_payload):
        assert client.get('/api?action=getNextDutySlipId').get_json() == {'nextId': 1001}

        response = post(client, 'saveDutySlip', duty_slip_payload)
        assert response.status_code == 200
        saved = response.get_json()
        assert saved['success'] is True
        assert saved['DS_No'] == '1001'
        assert saved['Version'] == 1

        slip = client.get('/api?action=getDutySlipById&id=1001').get_json()['slip']
        assert slip['Guest_Name'] == 'Anita Sharma'
        assert slip['Status'] == 'New'

        listing = client.get('/api?action=getAllDutySlips&filter=Needs Action').get_json()['slips']
        assert [s['DS_No'] for s in listing] == ['1001']

    def test_validation_error_envelope(self, client, duty_slip_payload):
        duty_slip_payload['Km_Out'] = '900'
        response = post(client, 'saveDutySlip', duty_slip_payload)
        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['code'] == 'VALIDATION_ERROR'
        assert 'Km_Out' in body['fields']

    def test_not_found(self, client):
        response = client.get('/api?action=getDutySlipById&id=4040')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'

    def test_stale_update_conflicts(self, client, duty_slip):
        first = post(client, 'updateDutySlip', {'DS_No': duty_slip.ds_no, 'Version': 1, 'Routing': 'A - B'})
        assert first.get_json()['Version'] == 2
        second = post(client, 'updateDutySlip', {'DS_No': duty_slip.ds_no, 'Version': 1, 'Routing': 'A - C'})
        assert second.status_code == 409
        assert second.get_json()['code'] == 'CONFLICT'

    def test_invalid_transition(self, client, closed_slip):
        response = post(client, 'updateDutySlip', {
            'DS_No': closed_slip.ds_no, 'Version': 1, 'Status': 'Closed by Driver',
            'Driver_Time_In': '21:00', 'Driver_Km_In': '1300',
        })
        assert response.status_code == 409
        assert response.get_json()['code'] == 'INVALID_TRANSITION'

    def test_share_links(self, client, duty_slip):
        links = client.get(f'/api?action=getDutySlipShareLinks&id={duty_slip.ds_no}').get_json()['links']
        assert links['view'].endswith(f'view.html?id={duty_slip.ds_no}')

    def test_upload_signature_in_inline_mode(self, client, signature_data_url):
        response = post(client, 'uploadSignature', {'signatureData': signature_data_url, 'fileName': 'sig.png'})
        assert response.status_code == 200
        assert response.get_json()['url'].startswith('https://admin.example.com/signatures/sig-')


@pytest.mark.integration
class TestInvoiceApi:

    def test_preview_save_and_view(self, client, closed_slip):
        preview = post(client, 'previewInvoice', {'DS_No': closed_slip.ds_no}).get_json()['breakdown']
        assert preview['Grand_Total'] == 4900

        saved = post(client, 'saveInvoice', {'DS_No': closed_slip.ds_no}).get_json()
        assert saved['success'] is True

        exists = client.get(f'/api?action=checkInvoiceExists&bookingId={closed_slip.booking_id}').get_json()
        assert exists == {'exists': True}

        invoice = client.get(f"/api?action=getInvoiceByPublicId&pid={saved['Public_ID']}").get_json()['invoice']
        assert invoice['Invoice_ID'] == f'ST-{closed_slip.booking_id}'

        again = post(client, 'saveInvoice', {'DS_No': closed_slip.ds_no})
        assert again.status_code == 409


@pytest.mark.integration
class TestSalarySlipApi:

    def test_create_and_approve(self, client):
        created = post(client, 'createSalarySlip', {'EmployeeID': 'EMP102', 'PayPeriod': '2025-06'}).get_json()
        assert created['slipId'] == 'EMP102-2025-06'

        approved = post(client, 'updateSalarySlip', {
            'slipId': created['slipId'], 'Version': created['Version'], 'Status': 'Approved',
            'ApprovalNotes': 'Approved',
        }).get_json()
        assert approved['Status'] == 'Approved'

        slip = client.get('/api?action=getSalarySlipById&id=EMP102-2025-06').get_json()['slip']
        assert slip['EmployeeName'] == 'Suresh Babu'
        assert slip['NetPayableAmount'] == 18000
        assert len(client.get('/api?action=getAllSalarySlips').get_json()['slips']) == 1


@pytest.mark.integration
class TestPublicApi:

    def test_review_and_feedback(self, client, duty_slip):
        logged = post(client, 'logNewReview', {'ds_no': str(duty_slip.ds_no), 'rating': 5}).get_json()
        assert logged['reviewId'] == 1

        details = client.get('/api?action=getFeedbackDetails&id=1').get_json()
        assert details['slip']['DS_No'] == str(duty_slip.ds_no)
        assert client.get('/api?action=getReviewById&id=1').get_json()['review']['rating'] == 5
        assert len(client.get('/api?action=getAllReviews').get_json()['reviews']) == 1

    def test_booking_and_lead(self, client):
        booking = post(client, 'submitBooking', {'Mobile_Number': '9123456780', 'Pickup_City': 'Chennai'}).get_json()
        assert booking['message'] == 'Booking Saved'
        lead = post(client, 'submitLead', {'pickup': 'Chennai', 'drop': 'Vellore'}).get_json()
        assert lead['message'] == 'Lead Saved'

        ids = {b['Booking_ID'] for b in client.get('/api?action=getBookings').get_json()['bookings']}
        assert ids == {booking['id'], lead['id']}

    def test_routes(self, client):
        saved = post(client, 'saveRoute', {'Route_Slug': 'chennai-to-vellore', 'Distance_Km': '140'}).get_json()
        assert saved['message'] == 'Route created.'
        routes = client.get('/api?action=getRoutes').get_json()['routes']
        assert routes[0]['Distance_Km'] == '140'

    def test_financial_entry(self, client):
        saved = post(client, 'saveFinancialEntry', {
            'Date': '2025-06-10', 'Account': 'Company', 'Flow': 'Credit', 'Category': 'Client Revenue',
            'Amount': '4900',
        }).get_json()
        assert saved == {'success': True, 'newId': 'FIN-1001'}

        data = client.get('/api?action=getFinancialData&account=Company').get_json()
        assert data['totals']['Company']['net'] == 4900

    def test_career_and_tariff(self, client):
        saved = post(client, 'submitCareer', {'name': 'Mani Selvam', 'phone': '9123456781', 'type': 'Job'})
        assert saved.get_json() == {'success': True, 'message': 'Application Saved'}

        tariff = client.get('/api?action=getTariff').get_json()
        assert len(tariff['local']) == 3
        assert tariff['outstation'][0]['Per_Km'] == 13
