# taxi_backend\logic\dates.py
# Local Time Helpers: All timestamps and dates are handled at the fixed Brazilian offset (UTC-03:00),
# independent of the server's own time zone.

from datetime import datetime, timedelta, timezone

LOCAL_TZ = timezone(timedelta(hours=-3))
MISSING = 'N/A'


def local_now():
    return datetime.now(LOCAL_TZ)


def local_timestamp():
    """Creation timestamp as stored in the database: 'YYYY-MM-DD HH:MM:SS' at UTC-03:00"""
    return local_now().strftime('%Y-%m-%d %H:%M:%S')


def format_date(date_string):
    """Renders a stored 'YYYY-MM-DD' date in the pt-BR short format (dd/mm/YYYY)"""
    if not date_string:
        return MISSING
    try:
        day = datetime.strptime(str(date_string)[:10], '%Y-%m-%d')
    except ValueError:
        return date_string
    return day.replace(tzinfo=LOCAL_TZ).strftime('%d/%m/%Y')


def format_timestamp(timestamp_string):
    """Formats a stored creation timestamp for display ('dd/mm/YYYY, HH:MM')"""
    if not timestamp_string:
        return None
    try:
        moment = datetime.strptime(timestamp_string, '%Y-%m-%d %H:%M:%S')
    except ValueError:
        return timestamp_string
    return moment.strftime('%d/%m/%Y, %H:%M')


def format_generated_at(moment=None):
    moment = moment or local_now()
    return moment.astimezone(LOCAL_TZ).strftime('%d/%m/%Y, %H:%M:%S')
