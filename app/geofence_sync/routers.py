from django.conf import settings


def _mobile_alias() -> str:
    return getattr(settings, "GEOFENCE_SYNC", {}).get("DATABASE_ALIAS", "geofence_mobile")


class GeofenceMobileRouter:
    """Keep the mobile geofence datastore out of the ORM.

    Internal models always live on the default database and no schema is
    ever migrated onto the mobile alias.
    """

    def db_for_read(self, model, **hints):
        return None

    def db_for_write(self, model, **hints):
        return None

    def allow_relation(self, obj1, obj2, **hints):
        return None

    def allow_migrate(self, db, app_label, model_name=None, **hints):
        if db == _mobile_alias():
            return False
        return None
