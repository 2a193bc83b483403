import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.urls import path

from care.realtime.consumers import AppointmentUpdatesConsumer, doctor_group

# consumers reach the database through database_sync_to_async, which closes
# connections and so cannot run inside a test transaction
pytestmark = pytest.mark.django_db(transaction=True)

application = URLRouter([
    path('ws/appointments/', AppointmentUpdatesConsumer.as_asgi()),
    path('ws/appointments/<int:doctor_id>/', AppointmentUpdatesConsumer.as_asgi()),
])


def _connect_as(account, url='/ws/appointments/'):
    async def scenario():
        communicator = WebsocketCommunicator(application, url)
        communicator.scope['user'] = account
        connected, code = await communicator.connect()
        await communicator.disconnect()
        return connected, code
    return async_to_sync(scenario)()


def test_doctor_receives_own_updates(doctor):
    async def scenario():
        communicator = WebsocketCommunicator(application, '/ws/appointments/')
        communicator.scope['user'] = doctor.account
        connected, _ = await communicator.connect()
        assert connected
        assert (await communicator.receive_json_from())['doctorId'] == doctor.pk

        await get_channel_layer().group_send(doctor_group(doctor.pk), {
            'type': 'appointment.changed', 'op': 'created', 'appointmentId': 7, 'doctorId': doctor.pk,
        })
        message = await communicator.receive_json_from()
        await communicator.disconnect()
        return message

    message = async_to_sync(scenario)()
    assert message == {'type': 'appointment', 'op': 'created', 'appointmentId': 7, 'doctorId': doctor.pk}


def test_patient_is_refused(patient):
    connected, code = _connect_as(patient.account)
    assert connected is False
    assert code == 4003


def test_doctor_cannot_follow_another_doctor(doctor, make_doctor):
    other = make_doctor(name='Meredith Grey', specialty='Surgery')
    connected, code = _connect_as(doctor.account, f'/ws/appointments/{other.pk}/')
    assert connected is False
    assert code == 4003
