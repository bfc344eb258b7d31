"""
Appointment actions: the orchestration boundary for the clinical app.

Each action checks identity first, validates the payload shape, calls the
service and returns an ActionResult. Successful mutations mark the
affected views stale.
"""
from apps.authz.context import require_authenticated
from apps.core import revalidation
from apps.core.results import run_action
from apps.core.validation import validated_data

from . import services
from .serializers import (
    AddServiceSerializer,
    AppointmentCreateSerializer,
    AppointmentUpdateSerializer,
    AppointmentWithNewPatientSerializer,
    RescheduleSerializer,
    StatusUpdateSerializer,
)


def _appointment_data(appointment):
    return {
        'id': str(appointment.id),
        'estado': appointment.estado,
        'fecha_hora_inicio': appointment.fecha_hora_inicio.isoformat(),
        'fecha_hora_fin': appointment.fecha_hora_fin.isoformat(),
    }


def create_appointment(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(AppointmentCreateSerializer, payload)
        appointment = services.create_appointment(ctx, **data)
        revalidation.revalidate(revalidation.APPOINTMENTS)
        return _appointment_data(appointment)
    return run_action('create_appointment', operation)


def create_appointment_with_new_patient(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(AppointmentWithNewPatientSerializer, payload)
        appointment = services.create_appointment_with_new_patient(
            ctx, dict(data['patient']), **data['appointment']
        )
        revalidation.revalidate(revalidation.APPOINTMENTS)
        return {**_appointment_data(appointment), 'patient_id': str(appointment.patient_id)}
    return run_action('create_appointment_with_new_patient', operation)


def update_appointment(ctx, appointment_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(AppointmentUpdateSerializer, payload)
        appointment = services.update_appointment(ctx, appointment_id, **data)
        revalidation.revalidate(revalidation.APPOINTMENTS)
        return _appointment_data(appointment)
    return run_action('update_appointment', operation)


def reschedule_appointment(ctx, appointment_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(RescheduleSerializer, payload)
        appointment = services.reschedule_appointment(ctx, appointment_id, **data)
        revalidation.revalidate(revalidation.APPOINTMENTS)
        return _appointment_data(appointment)
    return run_action('reschedule_appointment', operation)


def update_appointment_status(ctx, appointment_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(StatusUpdateSerializer, payload)
        appointment = services.update_appointment_status(ctx, appointment_id, data['estado'])
        revalidation.revalidate(revalidation.APPOINTMENTS, revalidation.REPORTS)
        return _appointment_data(appointment)
    return run_action('update_appointment_status', operation)


def delete_appointment(ctx, appointment_id):
    def operation():
        services.delete_appointment(ctx, appointment_id)
        revalidation.revalidate(revalidation.APPOINTMENTS)
        return {'id': str(appointment_id)}
    return run_action('delete_appointment', operation)


def add_service_to_appointment(ctx, appointment_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(AddServiceSerializer, payload)
        line = services.add_service_to_appointment(ctx, appointment_id, **data)
        revalidation.revalidate(revalidation.APPOINTMENTS, revalidation.PAYMENTS)
        return {
            'id': str(line.id),
            'nombre_servicio': line.nombre_servicio,
            'precio_unitario': str(line.precio_unitario),
            'cantidad': line.cantidad,
            'subtotal': str(line.subtotal),
        }
    return run_action('add_service_to_appointment', operation)


def remove_service_from_appointment(ctx, appointment_service_id):
    def operation():
        services.remove_service_from_appointment(ctx, appointment_service_id)
        revalidation.revalidate(revalidation.APPOINTMENTS, revalidation.PAYMENTS)
        return {'id': str(appointment_service_id)}
    return run_action('remove_service_from_appointment', operation)
