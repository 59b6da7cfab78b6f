"""
Unit tests for signature capture and storage
"""

import base64
import os

import pytest

from errors import PayloadError, ValidationError
from services.signature_service import SignatureCapture, SignatureService
from services.transaction_helper import TransactionHelper


class TestSignatureCapture:

    def test_empty_values(self):
        capture = SignatureCapture('Guest_Signature_Link')
        assert capture.capture(None) is None
        assert capture.capture('  ') is None

    def test_valid_png(self, signature_data_url):
        payload = SignatureCapture('Guest_Signature_Link').capture(signature_data_url)
        assert payload.image_bytes.startswith(b'\x89PNG')
        assert len(payload.digest) == 64

    @pytest.mark.parametrize('value', [
        'data:image/jpeg;base64,AAAA',
        'data:image/png;base64,%%%not base64%%%',
        'data:image/png;base64,' + base64.b64encode(b'plain text, not an image').decode(),
        'data:image/png;base64,',
        12345,
    ])
    def test_malformed_payloads(self, value):
        with pytest.raises(PayloadError) as excinfo:
            SignatureCapture('AuthSignature').capture(value)
        assert 'AuthSignature' in excinfo.value.fields


class TestSignatureService:

    def test_inline_mode_keeps_data_url(self, signature_data_url, tmp_path):
        service = SignatureService('inline', str(tmp_path / 'store'))
        assert service.resolve('Guest_Signature_Link', signature_data_url) == signature_data_url
        assert not (tmp_path / 'store').exists()

    def test_urls_pass_through(self, tmp_path):
        service = SignatureService('upload', str(tmp_path / 'store'))
        url = 'https://admin.example.com/signatures/guest-abc.png'
        assert service.resolve('Guest_Signature_Link', url) == url

    def test_unknown_mode(self, tmp_path):
        with pytest.raises(ValueError):
            SignatureService('s3', str(tmp_path))

    def test_upload_is_content_addressed(self, app, signature_data_url, tmp_path):
        service = SignatureService('upload', str(tmp_path / 'store'), 'https://admin.example.com')
        first = service.upload_data_url(signature_data_url, 'guest.png')
        second = service.upload_data_url(signature_data_url, 'guest.png')
        assert first == second
        assert first.startswith('https://admin.example.com/signatures/guest-')
        assert len(os.listdir(tmp_path / 'store')) == 1

    def test_upload_requires_data(self, app, tmp_path):
        service = SignatureService('upload', str(tmp_path / 'store'))
        with pytest.raises(PayloadError):
            service.upload_data_url('', 'guest.png')

    def test_failed_transaction_removes_new_file(self, app, signature_data_url, tmp_path):
        service = SignatureService('upload', str(tmp_path / 'store'))

        @TransactionHelper.with_transaction
        def write_then_fail():
            service.resolve('Guest_Signature_Link', signature_data_url)
            assert len(os.listdir(tmp_path / 'store')) == 1
            raise ValidationError('later step failed')

        with pytest.raises(ValidationError):
            write_then_fail()
        assert os.listdir(tmp_path / 'store') == []


class TestUploadModeDutySlips:

    def test_client_close_stores_file_url(self, upload_app, duty_slip_payload, signature_data_url):
        services = upload_app.extensions['ops_services']
        record = services.duty_slips.create_slip(duty_slip_payload)
        closed = services.duty_slips.update_slip({
            'DS_No': record['DS_No'], 'Version': record['Version'], 'Status': 'Closed by Client',
            'Guest_Signature_Link': signature_data_url,
        })

        url = closed['Guest_Signature_Link']
        assert url.startswith('https://admin.example.com/signatures/Guest_Signature_Link-')
        filename = url.rsplit('/', 1)[1]
        assert os.path.exists(os.path.join(upload_app.config['SIGNATURE_UPLOAD_FOLDER'], filename))

    def test_uploaded_file_is_served(self, upload_app, signature_data_url):
        services = upload_app.extensions['ops_services']
        url = services.signatures.upload_data_url(signature_data_url, 'auth.png')
        response = upload_app.test_client().get(url.replace('https://admin.example.com', ''))
        assert response.status_code == 200
        assert response.mimetype == 'image/png'
