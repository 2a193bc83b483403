from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model
from django.db import transaction

from care.models import Role
from care.services.identity import delete_account, entity_model, register
from care.services.profiles import invalidate_doctors_cache

Account = get_user_model()

DEMO_SET = [
    (Role.ADMIN, 'admin@clinic.local', 'Clinic Admin', '9000000001', None),
    (Role.DOCTOR, 'house@clinic.local', 'Gregory House', '5550000001', 'Diagnostics'),
    (Role.DOCTOR, 'grey@clinic.local', 'Meredith Grey', '5550000002', 'Surgery'),
    (Role.PATIENT, 'patient@clinic.local', 'Demo Patient', '9000000002', None),
]


class Command(BaseCommand):
    help = "Ensure demo accounts exist with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument('--password', default='demo12345', help='password set on every demo account')

    def handle(self, *args, **opts):
        password = opts['password']
        for role, email, name, phone, specialty in DEMO_SET:
            account = Account.objects.filter(email__iexact=email).first()
            if account is not None and Role.parse(account.role) != role:
                # an account holds exactly one role entity, so the old one goes with it
                with transaction.atomic():
                    old_id = account.id
                    delete_account(old_id)
                    account, _ = register(role, email=email, password=password, name=name, phone=phone,
                                          specialty=specialty)
                self.stdout.write(self.style.WARNING(f"replaced: {old_id} -> {account.id} {email} ({role.value})"))
                continue
            if account is None:
                account, _ = register(role, email=email, password=password, name=name, phone=phone, specialty=specialty)
                self.stdout.write(self.style.SUCCESS(f"created: {account.id} {email} ({role.value})"))
                continue
            # reset password and active flag
            account.set_password(password)
            account.is_active = True
            account.save(update_fields=['password', 'is_active'])
            model = entity_model(role)
            if not model.objects.filter(account=account).exists():
                fields = {'account': account, 'name': name, 'phone': phone, 'email': email}
                if role == Role.DOCTOR:
                    fields['specialty'] = specialty
                model.objects.create(**fields)
            self.stdout.write(self.style.SUCCESS(f"ok: {account.id} {email} ({role.value})"))
        invalidate_doctors_cache()
        self.stdout.write(self.style.SUCCESS("All demo accounts ensured."))
