from .exceptions import BadRequest


def parse_id(value, name='id'):
    """Primary key from a query string or payload value; None when absent"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise BadRequest(f'{name} must be a numeric id')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f'{name} must be a numeric id')


def get_id_param(request, name):
    return parse_id(request.query_params.get(name), name)
