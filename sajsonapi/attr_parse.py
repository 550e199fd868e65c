import datetime
import sqlalchemy
import sajsonapi
from .errors import BadRequest


def _parse_temporal(python_type, attr_val):
    """
    Parse datetime, date and time values for the common representations:
    iso format and str(datetime.datetime.now()) (which is also what our json provider emits)
    """
    value = str(attr_val)
    try:
        if python_type == datetime.datetime:
            return datetime.datetime.fromisoformat(value)
        if python_type == datetime.date:
            return datetime.date.fromisoformat(value[:10])
        return datetime.time.fromisoformat(value)
    except ValueError as exc:
        sajsonapi.log.warning(f'Invalid {python_type.__name__} {exc} for value "{attr_val}"')
        raise BadRequest(f'Invalid {python_type.__name__} value "{attr_val}"')


def parse_attr(column, attr_val):
    """
    Parse the supplied `attr_val` so it can be saved in the SQLAlchemy `column`

    :param column: SQLAlchemy column
    :param attr_val: jsonapi attribute value
    :return: processed value
    """
    if attr_val is None:
        return attr_val

    try:
        python_type = column.type.python_type
    except NotImplementedError as exc:
        # custom column type: the user/dev should know how to handle it
        sajsonapi.log.debug(exc)
        return attr_val

    # skip type coercion on JSON columns, since they could be anything
    if isinstance(column.type, sqlalchemy.types.JSON):
        return attr_val

    if isinstance(attr_val, python_type):
        return attr_val

    if python_type in (datetime.datetime, datetime.date, datetime.time):
        return _parse_temporal(python_type, attr_val)

    try:
        return python_type(attr_val)
    except (TypeError, ValueError):
        raise BadRequest(f'Invalid value "{attr_val}" for {column.name}')
