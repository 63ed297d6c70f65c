"""
core/messages.py -- Localized message catalog.

Services and error kinds refer to messages by key ("auth.invalid_credentials");
the API layer turns a key into text with translate(), walking the request's
fallback chain (e.g. ["es", "en"]). English is complete; other catalogs may
omit keys and fall back to English. An unknown key renders as the key itself
so a missing translation never fails a request.
"""

from __future__ import annotations

from collections.abc import Iterable

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        # common
        "common.internal_error": "An unexpected error occurred.",
        "common.not_found": "The requested resource was not found.",
        "common.conflict": "The resource already exists.",
        "common.validation_failed": "Request validation failed.",
        "common.dependency_failure": "A downstream service is unavailable. Please try again later.",
        "common.rate_limited": "Too many requests.",
        # auth (users)
        "auth.register_success": "Registration successful. Please check your email to activate your account.",
        "auth.email_already_exists": "An account with this email already exists.",
        "auth.invalid_credentials": "Invalid email or password.",
        "auth.account_inactive": "This account is not active.",
        "auth.account_not_activated": "Please activate your account before logging in.",
        "auth.login_success": "Login successful.",
        "auth.logout_success": "Logged out successfully.",
        "auth.account_activated": "Your account has been activated. You can now log in.",
        "auth.invalid_or_expired_token": "The token is invalid or has expired.",
        "auth.password_reset_email_sent": "If an account exists for this email, a password reset link has been sent.",
        "auth.password_reset_success": "Your password has been reset successfully.",
        "auth.password_reset_email_failed": "We could not send the password reset email. Please try again later.",
        "auth.password_mismatch": "Passwords do not match.",
        "auth.invalid_current_password": "The current password is incorrect.",
        "auth.unauthorized": "Authentication required.",
        "auth.forbidden": "You do not have permission to perform this action.",
        # users
        "user.profile_retrieved": "Profile retrieved successfully.",
        "user.profile_updated": "Profile updated successfully.",
        "user.email_taken": "This email is already in use by another account.",
        "user.password_changed": "Password changed successfully.",
        "user.not_found": "User not found.",
        "user.account_deactivated": "Your account has been deactivated.",
        # admins
        "admin.created": "Admin created successfully.",
        "admin.updated": "Admin updated successfully.",
        "admin.deleted": "Admin deleted successfully.",
        "admin.not_found": "Admin not found.",
        "admin.email_exists": "An admin with this email already exists.",
        "admin.password_updated": "Password updated successfully.",
        "admin.account_inactive": "This admin account is inactive.",
        # languages
        "language.not_found": "Language not found.",
        "language.code_exists": "Language '{code}' already exists.",
        "language.invalid_code": "Invalid language code '{code}'.",
        "language.default_required": "The default language cannot be deactivated.",
        # dropdowns
        "dropdown.invalid_type": (
            "Invalid dropdown type '{value}'. Dropdown type must be 2-50 characters long, start with a letter, "
            "and contain only lowercase letters, numbers, hyphens, and underscores."
        ),
        "dropdown.not_found": "Dropdown option not found.",
        "dropdown.name_exists": "A dropdown option named '{name}' already exists for this dropdown type.",
        "dropdown.code_exists": "Unique code '{code}' already belongs to another dropdown type.",
        "dropdown.variant_exists": "Option '{code}' already has a '{language}' variant.",
        "dropdown.code_not_found": "No dropdown option found with unique code '{code}'.",
        "dropdown.code_type_mismatch": "Unique code '{code}' does not belong to dropdown type '{dropdown_type}'.",
        "dropdown.in_use": "Option '{code}' cannot be deleted while it is in use (use count: {count}).",
        "dropdown.variants_deleted": "Deleted {count} language variant(s) of the dropdown option.",
        "dropdown.no_active_languages": "No active languages are configured.",
        "dropdown.invalid_language": "Language '{code}' is not an active language.",
        "dropdown.created": "Dropdown option created successfully.",
        "dropdown.updated": "Dropdown option updated successfully.",
        "dropdown.deleted": "Dropdown option deleted successfully.",
        "dropdown.bulk_completed": "Bulk {action} completed for {count} option(s).",
        "dropdown.ids_mismatch": "Some options do not exist or do not belong to dropdown type '{dropdown_type}'.",
        # settings
        "settings.invalid_group_type": (
            "Invalid group type '{value}'. Group type must be 1-100 characters and contain only letters, "
            "numbers, hyphens, and underscores."
        ),
        "settings.invalid_key": "Invalid setting key '{value}'.",
        "settings.not_found": "Setting not found.",
        "settings.deleted": "Setting deleted successfully.",
        "settings.group_deleted": "Settings group deleted successfully.",
        "settings.cache_cleared": "Settings cache cleared.",
        "settings.group_cache_cleared": "Settings cache cleared for group '{group_type}'.",
        "settings.file_upload_failed": "The file could not be stored. Please try again later.",
        # files
        "files.too_large": "File exceeds the maximum size of {max_bytes} bytes.",
        "files.unsupported_type": "Unsupported file type '{content_type}'.",
        "files.empty": "Uploaded file is empty.",
    },
    "es": {
        "common.internal_error": "Se produjo un error inesperado.",
        "common.not_found": "No se encontró el recurso solicitado.",
        "common.validation_failed": "La validación de la solicitud falló.",
        "common.rate_limited": "Demasiadas solicitudes.",
        "auth.register_success": "Registro exitoso. Revisa tu correo electrónico para activar tu cuenta.",
        "auth.email_already_exists": "Ya existe una cuenta con este correo electrónico.",
        "auth.invalid_credentials": "Correo electrónico o contraseña no válidos.",
        "auth.account_inactive": "Esta cuenta no está activa.",
        "auth.account_not_activated": "Activa tu cuenta antes de iniciar sesión.",
        "auth.login_success": "Inicio de sesión exitoso.",
        "auth.logout_success": "Sesión cerrada correctamente.",
        "auth.account_activated": "Tu cuenta ha sido activada. Ya puedes iniciar sesión.",
        "auth.invalid_or_expired_token": "El token no es válido o ha expirado.",
        "auth.password_reset_email_sent": (
            "Si existe una cuenta con este correo, se ha enviado un enlace para restablecer la contraseña."
        ),
        "auth.password_reset_success": "Tu contraseña se ha restablecido correctamente.",
        "auth.password_mismatch": "Las contraseñas no coinciden.",
        "auth.unauthorized": "Se requiere autenticación.",
        "user.profile_updated": "Perfil actualizado correctamente.",
        "user.not_found": "Usuario no encontrado.",
        "dropdown.not_found": "Opción no encontrada.",
        "dropdown.invalid_type": (
            "Tipo de lista '{value}' no válido. Debe tener entre 2 y 50 caracteres, comenzar con una letra "
            "y contener solo letras minúsculas, números, guiones y guiones bajos."
        ),
    },
    "fr": {
        "common.internal_error": "Une erreur inattendue s'est produite.",
        "common.not_found": "La ressource demandée est introuvable.",
        "auth.invalid_credentials": "Adresse e-mail ou mot de passe invalide.",
        "auth.account_inactive": "Ce compte n'est pas actif.",
        "auth.login_success": "Connexion réussie.",
        "auth.invalid_or_expired_token": "Le jeton est invalide ou a expiré.",
        "auth.password_reset_email_sent": (
            "Si un compte existe pour cette adresse, un lien de réinitialisation a été envoyé."
        ),
        "auth.password_mismatch": "Les mots de passe ne correspondent pas.",
        "user.not_found": "Utilisateur introuvable.",
    },
    "de": {
        "common.internal_error": "Ein unerwarteter Fehler ist aufgetreten.",
        "auth.invalid_credentials": "Ungültige E-Mail-Adresse oder ungültiges Passwort.",
        "auth.account_inactive": "Dieses Konto ist nicht aktiv.",
        "auth.login_success": "Anmeldung erfolgreich.",
        "auth.invalid_or_expired_token": "Das Token ist ungültig oder abgelaufen.",
        "auth.password_mismatch": "Die Passwörter stimmen nicht überein.",
    },
}


class _Params(dict):
    """format_map() mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def translate(key: str, languages: Iterable[str], **params) -> str:
    """Render message key in the first language along the chain that has it."""
    for language in languages:
        template = MESSAGES.get(language, {}).get(key)
        if template is not None:
            return template.format_map(_Params(params))
    template = MESSAGES["en"].get(key)
    if template is not None:
        return template.format_map(_Params(params))
    return key
