from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from care.models import AuditEvent

Account = get_user_model()


def _actor(account) -> Optional[Account]:
    # the acting account may have just deleted itself
    if isinstance(account, Account) and account.pk and Account.objects.filter(pk=account.pk).exists():
        return account
    return None


def log_action(*, account: Optional[Account], action: str, object_type: Optional[str]=None, object_id=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        account=_actor(account),
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )
