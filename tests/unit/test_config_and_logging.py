"""
Unit tests for reference data loading, startup checks and log formatting
"""

import json
import logging

from utils.config_validator import check_production_readiness, validate_reference_data
from utils.logging_config import JSONFormatter
from utils.reference_data import build_reference_data, load_reference_data


def test_bundled_reference_data():
    data = load_reference_data()
    assert data.find_driver('ravi kumar').employee_id == 'EMP101'
    assert data.find_employee('EMP103').designation == 'Senior Driver'
    assert data.default_rates.base_rate == 2500
    assert data.validate_category('Company', 'Debit', 'Vehicle Expense', 'Fuel') is None
    assert len(data.tariffs['local']) == 3

    valid, issues = validate_reference_data(data)
    assert valid, issues


def test_reference_data_issues():
    data = build_reference_data({
        'drivers': {
            'A': {'id': 'EMP-1'},
            'B': {'id': 'EMP-1'},
        },
        'categories': {'Company': {'Refund': {'Other': []}}},
    })
    valid, issues = validate_reference_data(data)
    assert not valid
    assert any('used by both' in issue for issue in issues)
    assert any("must not contain '-'" in issue for issue in issues)
    assert any('unknown flows' in issue for issue in issues)
    assert any('UPI' in issue for issue in issues)


def test_readiness_without_twilio(monkeypatch):
    monkeypatch.setenv('SESSION_SECRET', 'x' * 40)
    monkeypatch.delenv('TWILIO_ACCOUNT_SID', raising=False)
    result = check_production_readiness(load_reference_data())
    assert result['production_ready'] is True
    assert result['notifications_enabled'] is False
    assert result['recommendations']


def test_json_formatter_outside_request():
    record = logging.LogRecord('services.duty_slip_service', logging.INFO, __file__, 10,
                               'Duty slip %s created', ('1001',), None)
    line = json.loads(JSONFormatter().format(record))
    assert line['message'] == 'Duty slip 1001 created'
    assert line['logger'] == 'services.duty_slip_service'
    assert 'request' not in line


def test_request_id_is_echoed(client):
    response = client.get('/health', headers={'X-Request-ID': 'req-42'})
    assert response.headers['X-Request-ID'] == 'req-42'
    assert client.get('/health').headers['X-Request-ID']
