"""
Dealer API views.
"""
import logging

from django.shortcuts import get_object_or_404
from django.utils.translation import gettext_lazy as _
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import customization, domains, services, sub_dealers
from .mixins import DealerSessionMixin
from .models import Dealer, DealerDomain, DealerMembership, ThemePreset
from .permissions import HasDealerSession, Permission
from .resolver import resolve_dealer_by_slug, resolve_dealer_for_host, resolve_default_dealer
from .serializers import (
    ApplyPresetSerializer, CustomCssSerializer, DealerCreateSerializer,
    DealerDomainSerializer, DealerSerializer, DealerUserCreateSerializer,
    DealerUserSerializer, DomainCreateSerializer, LayoutSettingsSerializer,
    MetaSettingsSerializer, PasswordResetSerializer, PublicSiteSerializer,
    SubdomainSerializer, SubDealerSerializer, ThemePresetSerializer,
    ThemeSettingsSerializer,
)
from .theming import available_fonts, parse_override_document, resolve_theme

logger = logging.getLogger(__name__)

BY_DOMAIN_CACHE_CONTROL = 'public, s-maxage=300, stale-while-revalidate=600'


def parse_flag(value):
    return value in (True, 1, '1', 'true', 'True')


# ═══════════════════════════════════════════════════════════════
# PUBLIC
# ═══════════════════════════════════════════════════════════════

class DealerByDomainView(APIView):
    """
    GET /api/dealer/by-domain/?domain=<host>
    Hostname → {id, slug, name}; 404 если дилер не найден.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        domain = request.query_params.get('domain', '')
        try:
            if domain:
                dealer = resolve_dealer_for_host(domain)
            else:
                dealer = resolve_default_dealer()
        except Exception:
            logger.exception('Dealer lookup failed for domain %r', domain)
            return Response(
                {'error': 'Internal server error'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if dealer is None:
            return Response({'error': 'Dealer not found'}, status=status.HTTP_404_NOT_FOUND)

        response = Response(dealer.to_public_config())
        response['Cache-Control'] = BY_DOMAIN_CACHE_CONTROL
        return response


class PublicSiteView(APIView):
    """
    GET /api/public/site/          - дилер по Host
    GET /api/public/<slug>/site/   - дилер по slug
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, slug=None):
        if slug:
            dealer = resolve_dealer_by_slug(slug)
        else:
            dealer = getattr(request, 'dealer', None)
        if dealer is None:
            return Response({'error': 'Dealer not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(PublicSiteSerializer(dealer).data)


class ThemePresetListView(APIView):
    """
    GET /api/themes/
    Системные пресеты.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        presets = ThemePreset.objects.filter(is_system=True).order_by('name')
        return Response({
            'success': True,
            'presets': ThemePresetSerializer(presets, many=True).data,
        })


# ═══════════════════════════════════════════════════════════════
# SUPER ADMIN
# ═══════════════════════════════════════════════════════════════

class ThemePresetViewSet(viewsets.ModelViewSet):
    """
    /api/themes/presets/
    CRUD пресетов; системные пресеты неизменяемы.
    """
    queryset = ThemePreset.objects.all().order_by('-is_system', 'name')
    serializer_class = ThemePresetSerializer
    permission_classes = [IsAuthenticated, HasDealerSession]
    required_permissions = {
        'list': Permission.DEALERS_VIEW,
        'retrieve': Permission.DEALERS_VIEW,
        'create': Permission.DEALERS_CREATE,
        'update': Permission.DEALERS_EDIT,
        'partial_update': Permission.DEALERS_EDIT,
        'destroy': Permission.DEALERS_DELETE,
    }

    def update(self, request, *args, **kwargs):
        try:
            customization.ensure_preset_mutable(self.get_object())
        except customization.ThemePresetImmutableError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return super().update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        preset = self.get_object()
        try:
            customization.ensure_preset_mutable(preset)
        except customization.ThemePresetImmutableError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Theme preset deleted: {preset.name}")
        return super().destroy(request, *args, **kwargs)


class DealerViewSet(viewsets.ModelViewSet):
    """
    /api/dealer/dealers/
    Дилеры платформы и их пользователи. Удаление мягкое.
    """
    serializer_class = DealerSerializer
    permission_classes = [IsAuthenticated, HasDealerSession]
    required_permissions = {
        'list': Permission.DEALERS_VIEW,
        'retrieve': Permission.DEALERS_VIEW,
        'create': Permission.DEALERS_CREATE,
        'update': Permission.DEALERS_EDIT,
        'partial_update': Permission.DEALERS_EDIT,
        'destroy': Permission.DEALERS_DELETE,
        'GET': Permission.DEALERS_VIEW,
    }
    required_permission = Permission.DEALER_USERS_MANAGE

    def get_queryset(self):
        qs = Dealer.objects.all().order_by('name')
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(name__icontains=search) | qs.filter(slug__icontains=search)
        is_active = self.request.query_params.get('is_active')
        if is_active in ('true', 'false'):
            qs = qs.filter(is_active=(is_active == 'true'))
        return qs

    def get_serializer_class(self):
        if self.action == 'create':
            return DealerCreateSerializer
        return DealerSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        admin = data.pop('admin', None)
        try:
            dealer = services.create_dealer(data, admin=admin)
        except services.DealerServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DealerSerializer(dealer).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            dealer = services.update_dealer(instance, serializer.validated_data)
        except services.DealerServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(dealer).data)

    def destroy(self, request, *args, **kwargs):
        dealer = self.get_object()
        if dealer.pk == request.dealer_membership.dealer_id:
            return Response(
                {'detail': _('You cannot delete your own dealer')},
                status=status.HTTP_400_BAD_REQUEST,
            )
        services.deactivate_dealer(dealer)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get', 'post'])
    def users(self, request, pk=None):
        dealer = self.get_object()
        if request.method == 'GET':
            return Response(DealerUserSerializer(services.dealer_users(dealer), many=True).data)
        serializer = DealerUserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            membership = services.create_dealer_user(dealer, **serializer.validated_data)
        except services.DealerServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DealerUserSerializer(membership).data, status=status.HTTP_201_CREATED)

    def _membership(self, membership_id):
        dealer = self.get_object()
        return get_object_or_404(
            DealerMembership.objects.select_related('user', 'dealer'),
            pk=membership_id, dealer=dealer, is_active=True,
        )

    @action(detail=True, methods=['delete'], url_path=r'users/(?P<membership_id>[0-9]+)')
    def remove_user(self, request, pk=None, membership_id=None):
        services.deactivate_dealer_user(self._membership(membership_id))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path=r'users/(?P<membership_id>[0-9]+)/reset-password')
    def reset_password(self, request, pk=None, membership_id=None):
        membership = self._membership(membership_id)
        serializer = PasswordResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.reset_dealer_user_password(membership, serializer.validated_data['password'])
        return Response({'message': _('Password updated')})


# ═══════════════════════════════════════════════════════════════
# DEALER ADMIN
# ═══════════════════════════════════════════════════════════════

class CustomizationViewSet(DealerSessionMixin, viewsets.ViewSet):
    """
    /api/dealer/customization/
    Тема, layout, CSS и meta текущего дилера.
    """
    required_permissions = {'list': Permission.SETTINGS_VIEW}
    required_permission = Permission.SETTINGS_EDIT

    def list(self, request):
        dealer = self.get_dealer()
        resolved = resolve_theme(dealer)
        return Response({
            'themePresetId': dealer.theme_preset_id,
            'themeSettings': parse_override_document(dealer.theme_settings) or None,
            'layoutSettings': parse_override_document(dealer.layout_settings) or None,
            'customCss': dealer.custom_css,
            'metaTitle': dealer.meta_title,
            'metaDescription': dealer.meta_description,
            'metaKeywords': dealer.meta_keywords,
            'faviconUrl': dealer.favicon_url,
            'effective': resolved.as_dict(),
            'availableFonts': available_fonts(),
        })

    def _apply(self, serializer_class, handler, message):
        serializer = serializer_class(data=self.request.data)
        if not serializer.is_valid():
            return Response(
                {'message': _('Form validation error'), 'errors': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        handler(self.get_dealer(), serializer.validated_data)
        return Response({'success': True, 'message': message})

    @action(detail=False, methods=['put'])
    def theme(self, request):
        return self._apply(ThemeSettingsSerializer, customization.update_theme_settings, _('Theme updated'))

    @action(detail=False, methods=['put'])
    def layout(self, request):
        return self._apply(LayoutSettingsSerializer, customization.update_layout_settings, _('Layout updated'))

    @action(detail=False, methods=['put'])
    def css(self, request):
        return self._apply(
            CustomCssSerializer,
            lambda dealer, data: customization.update_custom_css(dealer, data['customCss']),
            _('CSS updated'),
        )

    @action(detail=False, methods=['put'])
    def meta(self, request):
        return self._apply(MetaSettingsSerializer, customization.update_meta_settings, _('Meta settings updated'))

    @action(detail=False, methods=['post', 'delete'])
    def preset(self, request):
        if request.method == 'DELETE':
            customization.clear_preset(self.get_dealer())
            return Response({'success': True, 'message': _('Preset cleared')})
        return self._apply(
            ApplyPresetSerializer,
            lambda dealer, data: customization.apply_preset(dealer, data['themePresetId']),
            _('Preset applied'),
        )

    @action(detail=False, methods=['post'])
    def reset(self, request):
        customization.reset_to_default(self.get_dealer())
        return Response({'success': True, 'message': _('Theme reset to default')})


class DealerDomainViewSet(DealerSessionMixin,
                          mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """
    /api/dealer/domains/
    Алиасы доменов текущего дилера.
    """
    queryset = DealerDomain.objects.all()
    serializer_class = DealerDomainSerializer
    required_permissions = {'list': Permission.SETTINGS_VIEW, 'retrieve': Permission.SETTINGS_VIEW}
    required_permission = Permission.SETTINGS_EDIT

    def create(self, request):
        serializer = DomainCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'message': _('Form validation error'), 'errors': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = serializer.validated_data
        try:
            alias = domains.add_domain(
                self.get_dealer(), data['domain'], data['type'], data['verification_method'],
            )
        except domains.DomainServiceError as e:
            return Response(
                {'message': str(e), 'errors': {'domain': [str(e)]}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(DealerDomainSerializer(alias).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        domains.remove_domain(instance)

    @action(detail=True, methods=['post'])
    def verify(self, request, pk=None):
        alias = self.get_object()
        if not domains.verify_domain(alias):
            return Response(
                {'success': False, 'message': _('Verification failed')},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({'success': True, 'domain': DealerDomainSerializer(alias).data})

    @action(detail=True, methods=['post'])
    def primary(self, request, pk=None):
        alias = self.get_object()
        try:
            domains.set_primary_domain(alias)
        except domains.DomainNotVerifiedError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'success': True, 'domain': DealerDomainSerializer(alias).data})

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        alias = domains.toggle_domain_status(self.get_object(), parse_flag(request.data.get('is_active')))
        return Response({'success': True, 'domain': DealerDomainSerializer(alias).data})

    @action(detail=False, methods=['put'])
    def subdomain(self, request):
        serializer = SubdomainSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dealer = domains.update_subdomain(self.get_dealer(), serializer.validated_data['subdomain'])
        except domains.DomainServiceError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'success': True, 'subdomain': dealer.subdomain})


class SubDealerViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """
    /api/dealer/sub-dealers/
    Прямые sub-dealer'ы текущего дилера.
    """
    serializer_class = SubDealerSerializer
    required_permissions = {
        'list': Permission.SUB_DEALERS_VIEW,
        'retrieve': Permission.SUB_DEALERS_VIEW,
        'hierarchy': Permission.SUB_DEALERS_VIEW,
        'stats': Permission.SUB_DEALERS_VIEW,
    }
    required_permission = Permission.SUB_DEALERS_MANAGE

    def get_queryset(self):
        qs = sub_dealers.sub_dealers_of(self.get_dealer()).order_by('-created_at')
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(name__icontains=search) | qs.filter(slug__icontains=search)
        is_active = self.request.query_params.get('is_active')
        if is_active in ('true', 'false'):
            qs = qs.filter(is_active=(is_active == 'true'))
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            sub_dealer = sub_dealers.create_sub_dealer(self.get_dealer(), serializer.validated_data)
        except sub_dealers.SubDealerError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(sub_dealer).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            sub_dealer = sub_dealers.update_sub_dealer(instance, serializer.validated_data)
        except sub_dealers.SubDealerError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(sub_dealer).data)

    def destroy(self, request, *args, **kwargs):
        try:
            sub_dealers.delete_sub_dealer(self.get_object())
        except sub_dealers.SubDealerError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        sub_dealer = sub_dealers.toggle_sub_dealer_status(
            self.get_object(), parse_flag(request.data.get('is_active')),
        )
        return Response(self.get_serializer(sub_dealer).data)

    @action(detail=True, methods=['post'])
    def inheritance(self, request, pk=None):
        sub_dealer = sub_dealers.update_product_inheritance(
            self.get_object(), parse_flag(request.data.get('inherit_parent_products')),
        )
        return Response(self.get_serializer(sub_dealer).data)

    @action(detail=False, methods=['get'])
    def hierarchy(self, request):
        return Response(sub_dealers.get_hierarchy(self.get_dealer()))

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(sub_dealers.get_stats(self.get_dealer()))
