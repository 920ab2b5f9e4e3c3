from django.utils.deprecation import MiddlewareMixin

from .models import Firm, FirmMembership


class CurrentFirmMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach a .firm attribute to the request, based on the logged-in user
    def process_request(self, request):
        if not request.user.is_authenticated:
            # Unauthenticated users
            request.firm = None
            return

        memberships = FirmMembership.objects.filter(
            user=request.user, is_active=True)

        # If user switched firms,
        # choice is stored in the session as "active_firm_id"
        firm_id = request.session.get("active_firm_id")
        if firm_id:
            # user must be an active member of that firm, so a tampered
            # session cannot jump into another firm
            request.firm = Firm.objects.filter(
                pk=firm_id,
                memberships__in=memberships,
            ).first()
            return

        # Default firm fallback: the user's oldest active membership
        membership = (memberships.select_related("firm")
                      .order_by("created_at", "id").first())
        request.firm = membership.firm if membership else None
