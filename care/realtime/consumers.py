import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from care.models import Doctor, Role
from care.services.identity import resolve_entity_id


def doctor_group(doctor_id: int) -> str:
    return f'appointments.doctor.{doctor_id}'


class AppointmentUpdatesConsumer(AsyncWebsocketConsumer):
    """Push appointment changes of one doctor to connected clients.

    A doctor connecting to ``ws/appointments/`` follows their own
    calendar.  Administrators follow any doctor through
    ``ws/appointments/<doctor_id>/``.

    Close codes: 4001 unauthenticated, 4003 forbidden, 4004 unknown doctor.
    """

    async def connect(self):
        user = self.scope.get('user') or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4001)
            return

        role = Role.parse(getattr(user, 'role', None))
        requested = self.scope['url_route']['kwargs'].get('doctor_id')
        if role == Role.DOCTOR:
            own_id = await database_sync_to_async(resolve_entity_id)(user.id)
            if own_id is None or (requested is not None and requested != own_id):
                await self.close(code=4003)
                return
            doctor_id = own_id
        elif role == Role.ADMIN and requested is not None:
            exists = await database_sync_to_async(Doctor.objects.filter(pk=requested).exists)()
            if not exists:
                await self.close(code=4004)
                return
            doctor_id = requested
        else:
            await self.close(code=4003)
            return

        self.group_name = doctor_group(doctor_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({'type': 'subscribed', 'doctorId': doctor_id}))

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # read-only stream; answer pings so clients can keep the socket alive
        if text_data and text_data.strip() == 'ping':
            await self.send('pong')

    async def appointment_changed(self, event):
        """
        Handler for group_send events of the form
            {"type": "appointment.changed", "op": ..., "appointmentId": ..., ...}
        """
        payload = {k: v for k, v in event.items() if k != 'type'}
        await self.send(json.dumps({'type': 'appointment', **payload}))
