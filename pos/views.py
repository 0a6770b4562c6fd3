from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from hospitality.params import get_id_param
from hospitality.permissions import HasRole, FRONT_DESK_ROLES, KITCHEN_ROLES, MANAGEMENT_ROLES
from hospitality.responses import paginated_response, success_response
from hotels.access import scope_queryset

from . import services
from .models import MenuCategory, MenuItem, Order, Table
from .serializers import (
    CreateOrderSerializer, MenuCategorySerializer, MenuItemSerializer, OrderPaymentSerializer,
    OrderSerializer, OrderStatusSerializer, PlacePublicOrderSerializer, PublicMenuItemSerializer,
    PublicOrderSerializer,
    TableSerializer, TableStatusSerializer,
)

HOTEL_PARAMETER = OpenApiParameter(
    name='hotel', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY,
    description='Hotel ID (super admin only; other staff always see their own hotel)'
)
ORDER_ID_PARAMETER = OpenApiParameter(
    name='order_id', type=OpenApiTypes.INT, location=OpenApiParameter.PATH, description='Order ID'
)


class TableListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': MANAGEMENT_ROLES}

    @extend_schema(summary="List tables", parameters=[HOTEL_PARAMETER],
                   responses={200: TableSerializer(many=True)})
    def get(self, request):
        tables = scope_queryset(request.user, Table.objects.filter(is_active=True), request.query_params.get('hotel'))
        if request.query_params.get('status'):
            tables = tables.filter(status=request.query_params['status'])
        return paginated_response(request, tables.order_by('table_number'), TableSerializer,
                                  'Tables fetched successfully')

    @extend_schema(
        summary="Create a table",
        request=TableSerializer,
        responses={201: TableSerializer},
        examples=[OpenApiExample('Create Table Example', value={'table_number': 'T1', 'capacity': 4})],
    )
    def post(self, request):
        serializer = TableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = services.create_table(request.user, serializer.validated_data, request.data.get('hotel'))
        return success_response('Table created successfully', TableSerializer(table).data, status.HTTP_201_CREATED)


class TableStatusView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(summary="Set table status", request=TableStatusSerializer, responses={200: TableSerializer})
    def patch(self, request, table_id):
        serializer = TableStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = services.update_table_status(request.user, table_id, serializer.validated_data['status'])
        return success_response('Table status updated', TableSerializer(table).data)


class MenuCategoryListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': MANAGEMENT_ROLES}

    @extend_schema(summary="List menu categories", parameters=[HOTEL_PARAMETER],
                   responses={200: MenuCategorySerializer(many=True)})
    def get(self, request):
        categories = scope_queryset(request.user, MenuCategory.objects.all(), request.query_params.get('hotel'))
        return paginated_response(request, categories, MenuCategorySerializer, 'Categories fetched successfully')

    @extend_schema(summary="Create a menu category", request=MenuCategorySerializer,
                   responses={201: MenuCategorySerializer})
    def post(self, request):
        serializer = MenuCategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = services.create_menu_category(request.user, serializer.validated_data, request.data.get('hotel'))
        return success_response('Category created successfully', MenuCategorySerializer(category).data,
                                status.HTTP_201_CREATED)


class MenuItemListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': MANAGEMENT_ROLES}

    @extend_schema(
        summary="List menu items",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='category', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='available', type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY),
        ],
        responses={200: MenuItemSerializer(many=True)},
    )
    def get(self, request):
        items = scope_queryset(request.user, MenuItem.objects.filter(is_active=True), request.query_params.get('hotel'))
        category_id = get_id_param(request, 'category')
        if category_id:
            items = items.filter(category_id=category_id)
        if request.query_params.get('available') == 'true':
            items = items.filter(is_available=True)
        items = items.prefetch_related('variants', 'ingredients__inventory_item')
        return paginated_response(request, items, MenuItemSerializer, 'Menu items fetched successfully')

    @extend_schema(
        summary="Create a menu item",
        description="Variants and the recipe (inventory consumed per unit sold) are created with the item.",
        request=MenuItemSerializer,
        responses={201: MenuItemSerializer},
        examples=[
            OpenApiExample(
                'Create Menu Item Example',
                summary='Masala chai with a large variant',
                value={'category': 1, 'name': 'Masala Chai', 'price': '40.00',
                       'variants': [{'name': 'Large', 'price': '60.00'}],
                       'ingredients': [{'inventory_item': 1, 'quantity': '0.150', 'unit': 'l'}]}
            )
        ]
    )
    def post(self, request):
        serializer = MenuItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        menu_item = services.create_menu_item(request.user, serializer.validated_data, request.data.get('hotel'))
        return success_response('Menu item created successfully', MenuItemSerializer(menu_item).data,
                                status.HTTP_201_CREATED)


class MenuItemDetailView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'PATCH': MANAGEMENT_ROLES}

    @extend_schema(summary="Update a menu item", request=MenuItemSerializer, responses={200: MenuItemSerializer})
    def patch(self, request, menu_item_id):
        serializer = MenuItemSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        menu_item = services.update_menu_item(request.user, menu_item_id, serializer.validated_data)
        return success_response('Menu item updated successfully', MenuItemSerializer(menu_item).data)


class OrderListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': FRONT_DESK_ROLES}

    @extend_schema(
        summary="List orders",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='order_type', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
        ],
        responses={200: OrderSerializer(many=True)},
    )
    def get(self, request):
        orders = scope_queryset(request.user, Order.objects.all(), request.query_params.get('hotel'))
        for field in ('status', 'order_type'):
            value = request.query_params.get(field)
            if value:
                orders = orders.filter(**{field: value})
        orders = orders.select_related('room').prefetch_related('items')
        return paginated_response(request, orders, OrderSerializer, 'Orders fetched successfully')

    @extend_schema(
        summary="Create an order",
        request=CreateOrderSerializer,
        responses={201: OrderSerializer},
        examples=[
            OpenApiExample(
                'Dine-in Order Example',
                summary='Two chai at table T1',
                value={'order_type': 'dine-in', 'table_number': 'T1',
                       'items': [{'menu_item': 1, 'quantity': 2}]}
            ),
            OpenApiExample(
                'Room Service Example',
                summary='Paid room service order',
                value={'order_type': 'room-service', 'room': 3, 'payment_mode': 'UPI',
                       'items': [{'menu_item': 1, 'quantity': 1, 'variant': 'Large'}]}
            ),
        ]
    )
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.create_order(request.user, serializer.validated_data)
        return success_response('Order created successfully', OrderSerializer(order).data, status.HTTP_201_CREATED)


class KitchenOrdersView(APIView):
    permission_classes = [HasRole]
    allowed_roles = KITCHEN_ROLES

    @extend_schema(summary="Kitchen queue", description="Pending and preparing orders, oldest first.",
                   parameters=[HOTEL_PARAMETER], responses={200: OrderSerializer(many=True)})
    def get(self, request):
        orders = scope_queryset(request.user, Order.objects.filter(status__in=services.KITCHEN_STATUSES),
                                request.query_params.get('hotel'))
        orders = orders.prefetch_related('items').order_by('placed_at', 'id')
        return success_response('Kitchen orders fetched successfully', OrderSerializer(orders, many=True).data)


class RunningOrdersView(APIView):
    permission_classes = [HasRole]
    allowed_roles = KITCHEN_ROLES

    @extend_schema(summary="Running orders", description="Every order that is not completed or cancelled.",
                   parameters=[HOTEL_PARAMETER], responses={200: OrderSerializer(many=True)})
    def get(self, request):
        orders = scope_queryset(request.user, Order.objects.filter(status__in=services.OPEN_STATUSES),
                                request.query_params.get('hotel'))
        orders = orders.prefetch_related('items').order_by('placed_at', 'id')
        return success_response('Running orders fetched successfully', OrderSerializer(orders, many=True).data)


class OrderDetailView(APIView):
    @extend_schema(summary="Get order details", parameters=[ORDER_ID_PARAMETER], responses={200: OrderSerializer})
    def get(self, request, order_id):
        order = services.get_order(request.user, order_id)
        return success_response('Order fetched successfully', OrderSerializer(order).data)


class OrderStatusView(APIView):
    permission_classes = [HasRole]
    allowed_roles = KITCHEN_ROLES

    @extend_schema(
        summary="Update order status",
        description="pending -> preparing -> ready -> served, or cancelled before serving. "
                    "Marking an order ready serves it straight away.",
        parameters=[ORDER_ID_PARAMETER],
        request=OrderStatusSerializer,
        responses={200: OrderSerializer},
        examples=[OpenApiExample('Start Preparing', value={'status': 'preparing'})],
    )
    def patch(self, request, order_id):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.update_order_status(request.user, order_id, serializer.validated_data['status'],
                                             serializer.validated_data.get('reason', ''))
        return success_response('Order status updated successfully', OrderSerializer(order).data)


class OrderPaymentView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(
        summary="Mark order paid",
        description="Records the payment and serves the order.",
        parameters=[ORDER_ID_PARAMETER],
        request=OrderPaymentSerializer,
        responses={200: OrderSerializer},
        examples=[OpenApiExample('Cash Payment', value={'payment_mode': 'CASH'})],
    )
    def patch(self, request, order_id):
        serializer = OrderPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.mark_order_paid(request.user, order_id, serializer.validated_data['payment_mode'])
        return success_response('Payment recorded successfully', OrderSerializer(order).data)


class OrderCheckoutView(APIView):
    permission_classes = [HasRole]
    allowed_roles = FRONT_DESK_ROLES

    @extend_schema(
        summary="Checkout order",
        description="Completes a paid, served order and deducts its recipe ingredients from stock. "
                    "Fails without touching stock when any ingredient is short.",
        parameters=[ORDER_ID_PARAMETER],
        request=None,
        responses={200: OrderSerializer},
    )
    def post(self, request, order_id):
        order = services.checkout_order(request.user, order_id)
        return success_response('Order completed successfully', OrderSerializer(order).data)


class PublicOrderCreateView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Place a guest order",
        description="Used by the QR menu. Dine-in orders reserve the table until staff confirm them.",
        request=PlacePublicOrderSerializer,
        responses={201: PublicOrderSerializer},
        examples=[
            OpenApiExample(
                'Public Dine-in Example',
                value={'order_type': 'dine-in', 'table_number': 'T1', 'customer_name': 'Ravi',
                       'customer_phone': '9876543210', 'items': [{'menu_item': 1, 'quantity': 2}]}
            )
        ]
    )
    def post(self, request, hotel_code):
        serializer = PlacePublicOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.place_public_order(hotel_code, serializer.validated_data)
        return success_response('Order placed successfully', PublicOrderSerializer(order).data,
                                status.HTTP_201_CREATED)


class PublicOrderTrackView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(summary="Track a guest order", responses={200: PublicOrderSerializer})
    def get(self, request, hotel_code, order_number):
        order = services.track_public_order(hotel_code, order_number)
        return success_response('Order fetched successfully', PublicOrderSerializer(order).data)


class PublicMenuView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        summary="Guest menu of a hotel",
        description="Active, available items grouped by category. Categories without items are left out.",
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request, hotel_code):
        hotel, sections = services.get_public_menu(hotel_code)
        menu = [
            {
                'category': {'id': section['category'].pk, 'name': section['category'].name,
                             'description': section['category'].description},
                'items': PublicMenuItemSerializer(section['items'], many=True).data,
                'item_count': len(section['items']),
            }
            for section in sections
        ]
        return success_response('Menu fetched successfully', {
            'hotel': {'name': hotel.name, 'code': hotel.code},
            'menu': menu,
            'total_categories': len(menu),
            'total_items': sum(section['item_count'] for section in menu),
        })
