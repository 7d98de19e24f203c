"""Localized texts for booking system messages and notifications.

Each event has a ``chat`` line posted to the booking conversation and a
``title``/``body`` pair for the counterparty notification. Texts are rendered in
the recipient's locale; unknown locales fall back to Spanish.
"""

DEFAULT_LOCALE = "es"

NEGOTIATION_MARKER = "--- Propuesta del profesional ---"

TEXTS = {
    "es": {
        "created": {
            "chat": "Nueva solicitud de encargo por ${price}.",
            "title": "Nueva solicitud de encargo",
            "body": "Un cliente te ha enviado un encargo por ${price}.",
        },
        "accept": {
            "chat": "Encargo aceptado. El profesional ha confirmado el trabajo.",
            "title": "Encargo confirmado",
            "body": "El profesional ha aceptado tu encargo.",
        },
        "reject": {
            "chat": "Encargo rechazado. El profesional no puede realizar este trabajo.",
            "title": "Encargo rechazado",
            "body": "El profesional ha rechazado tu encargo.",
        },
        "negotiate": {
            "chat": "Nueva propuesta: el profesional propone un precio de ${price}.{note}",
            "title": "Nueva propuesta recibida",
            "body": "El profesional ha propuesto un nuevo precio: ${price}.",
        },
        "accept_proposal": {
            "chat": "Propuesta aceptada. El cliente ha confirmado el acuerdo.",
            "title": "Cliente aceptó tu propuesta",
            "body": "El cliente ha aceptado tu propuesta de ${price}.",
        },
        "confirm_payment": {
            "chat": "Pago recibido. El encargo queda confirmado.",
            "title": "Encargo confirmado",
            "body": "El cliente pagó el encargo; ya puedes coordinar el trabajo.",
        },
        "start_work": {
            "chat": "El profesional ha iniciado el trabajo.",
            "title": "Trabajo iniciado",
            "body": "El profesional comenzó a trabajar en tu encargo.",
        },
        "request_review": {
            "chat": "El profesional ha terminado y solicita tu revisión.",
            "title": "Revisión solicitada",
            "body": "Revisa el trabajo y apruébalo para completar el encargo.",
        },
        "approve_work": {
            "chat": "El cliente aprobó el trabajo. Encargo completado.",
            "title": "Trabajo aprobado",
            "body": "El cliente aprobó tu trabajo.",
        },
        "cancel": {
            "chat": "El encargo fue cancelado.",
            "title": "Encargo cancelado",
            "body": "El encargo fue cancelado por la otra parte.",
        },
        "payment_approved": {
            "title": "Pago confirmado",
            "body": "Pago de ${amount} ({percentage}%) aprobado.",
        },
        "payment_received": {
            "title": "Nueva reserva pagada",
            "body": "Pago recibido; recibirás ${amount} al liberar los fondos.",
        },
        "payment_rejected": {
            "title": "Pago rechazado",
            "body": "{reason}",
        },
        "escrow_released": {
            "title": "Fondos liberados",
            "body": "El cliente liberó ${amount} para tu cuenta.",
        },
        "quotation": {
            "title": "Nueva cotización recibida",
            "body": "{title} - Total: ${total}",
        },
    },
    "en": {
        "created": {
            "chat": "New job request for ${price}.",
            "title": "New job request",
            "body": "A client sent you a job request for ${price}.",
        },
        "accept": {
            "chat": "Job accepted. The professional confirmed the work.",
            "title": "Job confirmed",
            "body": "The professional accepted your job.",
        },
        "reject": {
            "chat": "Job declined. The professional cannot take this work.",
            "title": "Job declined",
            "body": "The professional declined your job.",
        },
        "negotiate": {
            "chat": "New proposal: the professional proposes a price of ${price}.{note}",
            "title": "New proposal received",
            "body": "The professional proposed a new price: ${price}.",
        },
        "accept_proposal": {
            "chat": "Proposal accepted. The client confirmed the agreement.",
            "title": "Client accepted your proposal",
            "body": "The client accepted your proposal of ${price}.",
        },
        "confirm_payment": {
            "chat": "Payment received. The job is confirmed.",
            "title": "Job confirmed",
            "body": "The client paid for the job; you can now schedule the work.",
        },
        "start_work": {
            "chat": "The professional started the work.",
            "title": "Work started",
            "body": "The professional started working on your job.",
        },
        "request_review": {
            "chat": "The professional finished and asks for your review.",
            "title": "Review requested",
            "body": "Review the work and approve it to complete the job.",
        },
        "approve_work": {
            "chat": "The client approved the work. Job completed.",
            "title": "Work approved",
            "body": "The client approved your work.",
        },
        "cancel": {
            "chat": "The job was cancelled.",
            "title": "Job cancelled",
            "body": "The job was cancelled by the other party.",
        },
        "payment_approved": {
            "title": "Payment confirmed",
            "body": "Payment of ${amount} ({percentage}%) approved.",
        },
        "payment_received": {
            "title": "New paid booking",
            "body": "Payment received; you will get ${amount} once funds are released.",
        },
        "payment_rejected": {
            "title": "Payment rejected",
            "body": "{reason}",
        },
        "escrow_released": {
            "title": "Funds released",
            "body": "The client released ${amount} to your account.",
        },
        "quotation": {
            "title": "New quotation received",
            "body": "{title} - Total: ${total}",
        },
    },
}

# Provider rejection details shown to the payer.
REJECTION_REASONS = {
    "cc_rejected_insufficient_amount": "Fondos insuficientes en la tarjeta",
    "cc_rejected_bad_filled_card_number": "Número de tarjeta incorrecto",
    "cc_rejected_bad_filled_date": "Fecha de vencimiento incorrecta",
    "cc_rejected_bad_filled_security_code": "Código de seguridad incorrecto",
    "cc_rejected_card_disabled": "Tarjeta deshabilitada - contacta a tu banco",
    "cc_rejected_max_attempts": "Límite de intentos alcanzado - intenta más tarde",
    "cc_rejected_duplicated_payment": "Ya procesaste este pago recientemente",
    "cc_rejected_call_for_authorize": "Debes autorizar el pago con tu banco",
    "cc_rejected_high_risk": "Pago rechazado por seguridad",
    "cc_rejected_blacklist": "Tarjeta no permitida",
    "cc_rejected_other_reason": "El pago fue rechazado - intenta con otra tarjeta",
}
DEFAULT_REJECTION_REASON = "El pago fue rechazado. Por favor intenta con otra tarjeta."


def render(event, part, locale=None, **params):
    texts = TEXTS.get(locale or DEFAULT_LOCALE) or TEXTS[DEFAULT_LOCALE]
    return texts[event][part].format(**params)


def rejection_reason(status_detail):
    return REJECTION_REASONS.get(status_detail or "", DEFAULT_REJECTION_REASON)
