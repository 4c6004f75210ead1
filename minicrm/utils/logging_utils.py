import logging

logger = logging.getLogger('minicrm.actions')

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger('minicrm')
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    app.logger.setLevel(level)


def log_action(user_id, action, table_name, record_id, old_values=None, new_values=None, ip_address=None, user_agent=None):
    logger.info(
        f"{action} {table_name}#{record_id} by user {user_id} "
        f"from {ip_address or '-'} ({user_agent or '-'}) old={old_values} new={new_values}"
    )
