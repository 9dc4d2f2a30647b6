from backoffice.errors import ValidationError


def integer(value, field):
    # bool is an int subclass; True must not mean 1 unit of stock.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    return value


def non_negative_int(value, field):
    integer(value, field)
    if value < 0:
        raise ValidationError(f"{field} must not be negative", field=field, value=value)
    return value


def optional_non_negative_int(value, field):
    if value is None:
        return None
    return non_negative_int(value, field)
