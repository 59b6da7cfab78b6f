"""
Startup configuration validation
Checks the Flask secret, WhatsApp notification credentials and reference data
"""
import os
import logging
from typing import Dict, List, Tuple, Any

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid"""
    pass


def validate_twilio_config() -> Tuple[bool, List[str]]:
    """
    Validate Twilio configuration for WhatsApp notifications.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    required_vars = {
        'TWILIO_ACCOUNT_SID': 'Twilio Account SID',
        'TWILIO_AUTH_TOKEN': 'Twilio Auth Token',
        'TWILIO_PHONE_NUMBER': 'Twilio Phone Number'
    }

    for var_name, description in required_vars.items():
        value = os.getenv(var_name, '')
        if not value.strip():
            issues.append(f"Missing {description} ({var_name})")

    phone_number = os.getenv('TWILIO_PHONE_NUMBER', '').strip()
    if phone_number and not phone_number.startswith('+'):
        issues.append("TWILIO_PHONE_NUMBER must start with '+' (e.g., +14155238886)")

    return len(issues) == 0, issues


def validate_flask_config() -> Tuple[bool, List[str]]:
    """
    Validate Flask configuration for production.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    session_secret = os.getenv('SESSION_SECRET')
    if not session_secret:
        issues.append("Missing SESSION_SECRET environment variable")
    elif len(session_secret) < 32:
        issues.append("SESSION_SECRET should be at least 32 characters for security")

    storage_mode = os.getenv('SIGNATURE_STORAGE_MODE', 'inline')
    if storage_mode not in ('inline', 'upload'):
        issues.append(f"SIGNATURE_STORAGE_MODE must be 'inline' or 'upload', got '{storage_mode}'")

    debug_mode = os.getenv('DEBUG', 'False').lower()
    if debug_mode in ('true', '1', 'yes'):
        issues.append("DEBUG mode is enabled - should be disabled in production")

    return len(issues) == 0, issues


def validate_reference_data(reference_data) -> Tuple[bool, List[str]]:
    """
    Sanity-check the loaded reference data.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    if not reference_data.categories:
        issues.append("No financial accounts configured; tracker entries will be rejected")
    for account, flows in reference_data.categories.items():
        unknown_flows = set(flows) - {'Debit', 'Credit'}
        if unknown_flows:
            issues.append(f"Account {account} has unknown flows: {', '.join(sorted(unknown_flows))}")

    seen_ids = {}
    for name, entry in reference_data.drivers.items():
        if entry.employee_id and entry.employee_id in seen_ids:
            issues.append(f"Employee ID {entry.employee_id} used by both {seen_ids[entry.employee_id]} and {name}")
        seen_ids[entry.employee_id] = name
        if entry.employee_id and '-' in entry.employee_id:
            issues.append(f"Employee ID {entry.employee_id} must not contain '-'")

    if not reference_data.default_upi_id:
        issues.append("No default UPI ID configured for invoices")

    return len(issues) == 0, issues


def check_production_readiness(reference_data=None) -> Dict[str, Any]:
    """
    Combined readiness check, logged at startup.

    Returns:
        dict: Status information including issues and recommendations
    """
    debug_mode = os.getenv('DEBUG', 'False').lower() in ('true', '1', 'yes')

    twilio_valid, twilio_issues = validate_twilio_config()
    flask_valid, flask_issues = validate_flask_config()
    reference_valid, reference_issues = (True, [])
    if reference_data is not None:
        reference_valid, reference_issues = validate_reference_data(reference_data)

    all_issues = flask_issues + reference_issues
    is_production_ready = bool(flask_valid and reference_valid and not debug_mode)

    result = {
        'production_ready': is_production_ready,
        'notifications_enabled': twilio_valid,
        'debug_mode': debug_mode,
        'issues': all_issues,
        'recommendations': []
    }

    if not twilio_valid:
        result['recommendations'].append(
            "Configure Twilio credentials to send WhatsApp alerts; events are only logged until then")

    if not is_production_ready:
        result['recommendations'].append("Address configuration issues before deploying to production")

    if is_production_ready:
        logger.info("CONFIG: Production readiness check PASSED")
    else:
        logger.warning(f"CONFIG: Production readiness check FAILED - Issues: {len(all_issues)}")
        for issue in all_issues:
            logger.warning(f"CONFIG: Issue - {issue}")
    if not twilio_valid:
        logger.info(f"CONFIG: WhatsApp notifications disabled ({'; '.join(twilio_issues)})")

    return result
