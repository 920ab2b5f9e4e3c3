class TenantAdminMixin:
    """
    Enforce tenant isolation in Django admin.
    Uses request.firm (set by CurrentFirmMiddleware).
    Models without their own firm column set tenant_field,
    e.g. "invoice__firm" for invoice lines.
    """

    tenant_field = "firm"

    def _get_request_firm(self, request):
        return getattr(request, "firm", None)

    def get_queryset(self, request):
        qs = super().get_queryset(request)

        # If superuser, show everything;
        # otherwise restrict to the active firm
        if request.user.is_superuser:
            return qs
        firm = self._get_request_firm(request)
        if firm is None:
            # If no firm available in request, return none
            return qs.none()
        return qs.filter(**{self.tenant_field: firm})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """
        Restrict foreignkey dropdowns to the current firm, e.g.
        the firm field itself and firm-scoped client/matter fields.
        """
        if request.user.is_superuser:
            return super().formfield_for_foreignkey(db_field, request, **kwargs)

        firm = self._get_request_firm(request)
        rel_model = db_field.related_model

        if db_field.name == "firm":
            kwargs["queryset"] = (
                rel_model.objects.filter(pk=firm.pk) if firm is not None
                else rel_model.objects.none())
        elif any(f.name == "firm" for f in rel_model._meta.get_fields()):
            kwargs["queryset"] = (
                rel_model._default_manager.filter(firm=firm)
                if firm is not None else rel_model._default_manager.none())

        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # Ensure object is always owned by the firm on save (unless superuser)
        if not request.user.is_superuser and self.tenant_field == "firm":
            firm = self._get_request_firm(request)
            if firm is not None:
                obj.firm = firm
        super().save_model(request, obj, form, change)
