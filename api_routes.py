"""
Action API for the admin pages, share links and the public website.

Every call goes to ``/api?action=<verb>``: reads are GET with query
parameters, writes are POST with a JSON body. Errors come back as
``{success: false, error, code, fields?}`` with the matching HTTP status.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from errors import PayloadError, PortalError, UnknownActionError, ValidationError

api_bp = Blueprint('api', __name__)

logger = logging.getLogger(__name__)


def _services():
    return current_app.extensions['ops_services']


def _json_body():
    payload = request.get_json(force=True, silent=True)
    if payload is None:
        raise PayloadError("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise PayloadError("Request body must be a JSON object.")
    return payload


def _arg(name):
    value = request.args.get(name, '').strip()
    if not value:
        raise ValidationError(f"Query parameter '{name}' is required.", fields={name: 'Required'})
    return value


# Duty slips

def get_next_duty_slip_id():
    return {'nextId': _services().duty_slips.get_next_id()}


def get_all_duty_slips():
    slips = _services().duty_slips.list_slips(request.args.get('filter'), request.args.get('q'))
    return {'slips': slips}


def get_duty_slip_by_id():
    return {'slip': _services().duty_slips.get_slip_record(_arg('id'))}


def get_duty_slip_share_links():
    return {'links': _services().duty_slips.get_share_links(_arg('id'))}


def save_duty_slip():
    record = _services().duty_slips.create_slip(_json_body())
    return {
        'success': True,
        'message': f"Duty Slip {record['DS_No']} saved.",
        'DS_No': record['DS_No'],
        'Version': record['Version'],
    }


def update_duty_slip():
    record = _services().duty_slips.update_slip(_json_body())
    return {
        'success': True,
        'message': f"Duty Slip {record['DS_No']} updated.",
        'Status': record['Status'],
        'Version': record['Version'],
    }


def upload_signature():
    payload = _json_body()
    url = _services().signatures.upload_data_url(payload.get('signatureData'), payload.get('fileName'))
    return {'success': True, 'url': url}


# Invoices

def preview_invoice():
    return {'breakdown': _services().invoices.preview(_json_body())}


def save_invoice():
    saved = _services().invoices.save(_json_body())
    return {
        'success': True,
        'message': f"Invoice {saved['Invoice_ID']} saved.",
        'shareableLink': saved['shareableLink'],
        'Public_ID': saved['Public_ID'],
    }


def check_invoice_exists():
    return {'exists': _services().invoices.exists(request.args.get('bookingId'))}


def get_invoice_by_public_id():
    return {'invoice': _services().invoices.get_by_public_id(request.args.get('pid'))}


# Salary slips

def create_salary_slip():
    record = _services().salary_slips.create_slip(_json_body())
    return {
        'success': True,
        'message': f"Salary slip {record['slipId']} created.",
        'slipId': record['slipId'],
        'Version': record['Version'],
    }


def update_salary_slip():
    record = _services().salary_slips.update_slip(_json_body())
    return {
        'success': True,
        'message': f"Salary slip {record['slipId']} is {record['Status']}.",
        'Status': record['Status'],
        'Version': record['Version'],
    }


def get_all_salary_slips():
    return {'slips': _services().salary_slips.list_slips()}


def get_salary_slip_by_id():
    return {'slip': _services().salary_slips.get_slip_record(_arg('id'))}


# Reviews

def log_new_review():
    review = _services().reviews.log_review(_json_body())
    return {
        'success': True,
        'message': 'Thank you for your feedback!',
        'reviewId': review['review_id'],
    }


def get_all_reviews():
    return {'reviews': _services().reviews.list_reviews()}


def get_review_by_id():
    return {'review': _services().reviews.get_review(_arg('id')).to_record()}


def get_feedback_details():
    return _services().reviews.get_feedback_details(_arg('id'))


# Tracker

def get_financial_data():
    return _services().tracker.get_financial_data(request.args.get('account'))


def save_financial_entry():
    return {'success': True, 'newId': _services().tracker.save_entry(_json_body())}


# Website

def submit_booking():
    return {'success': True, 'message': 'Booking Saved', 'id': _services().website.submit_booking(_json_body())}


def submit_lead():
    return {'success': True, 'message': 'Lead Saved', 'id': _services().website.submit_lead(_json_body())}


def submit_career():
    _services().website.submit_career(_json_body())
    return {'success': True, 'message': 'Application Saved'}


def get_tariff():
    return _services().website.get_tariff()


def get_bookings():
    return {'bookings': _services().website.get_bookings()}


def get_routes():
    return {'routes': _services().website.get_routes()}


def save_route():
    route, created = _services().website.save_route(_json_body())
    return {
        'success': True,
        'message': 'Route created.' if created else 'Route saved successfully.',
        'route': route,
    }


GET_ACTIONS = {
    'getNextDutySlipId': get_next_duty_slip_id,
    'getAllDutySlips': get_all_duty_slips,
    'getDutySlipById': get_duty_slip_by_id,
    'getDutySlipShareLinks': get_duty_slip_share_links,
    'checkInvoiceExists': check_invoice_exists,
    'getInvoiceByPublicId': get_invoice_by_public_id,
    'getAllSalarySlips': get_all_salary_slips,
    'getSalarySlipById': get_salary_slip_by_id,
    'getAllReviews': get_all_reviews,
    'getReviewById': get_review_by_id,
    'getFeedbackDetails': get_feedback_details,
    'getFinancialData': get_financial_data,
    'getBookings': get_bookings,
    'getRoutes': get_routes,
    'getTariff': get_tariff,
}

POST_ACTIONS = {
    'saveDutySlip': save_duty_slip,
    'updateDutySlip': update_duty_slip,
    'uploadSignature': upload_signature,
    'previewInvoice': preview_invoice,
    'saveInvoice': save_invoice,
    'createSalarySlip': create_salary_slip,
    'updateSalarySlip': update_salary_slip,
    'logNewReview': log_new_review,
    'saveFinancialEntry': save_financial_entry,
    'submitBooking': submit_booking,
    'submitLead': submit_lead,
    'submitCareer': submit_career,
    'saveRoute': save_route,
}


@api_bp.route('', methods=['GET', 'POST'], strict_slashes=False)
def dispatch():
    """Route ``?action=`` to its handler"""
    action = request.args.get('action', '').strip()
    actions = GET_ACTIONS if request.method == 'GET' else POST_ACTIONS
    handler = actions.get(action)
    if handler is None:
        if action in GET_ACTIONS or action in POST_ACTIONS:
            other = 'POST' if request.method == 'GET' else 'GET'
            raise UnknownActionError(f"Action '{action}' must be called with {other}.")
        raise UnknownActionError(f"Invalid action: '{action}'." if action else "Missing action parameter.")

    logger.debug(f"API action {action}")
    return jsonify(handler())


@api_bp.errorhandler(PortalError)
def handle_portal_error(error):
    log = logger.warning if error.status_code < 500 else logger.error
    log(f"API {request.args.get('action', '-')} failed: {error.code} {error.message}")
    return jsonify(error.to_dict()), error.status_code


@api_bp.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'success': False, 'error': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code


@api_bp.errorhandler(Exception)
def handle_unexpected_error(error):
    logger.exception(f"Unhandled error in API action {request.args.get('action', '-')}: {str(error)}")
    return jsonify({'success': False, 'error': 'An internal error occurred. Please try again.',
                    'code': 'INTERNAL_ERROR'}), 500
