from rest_framework import status
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from hospitality.permissions import HasRole, MANAGEMENT_ROLES
from hospitality.responses import paginated_response, success_response
from hotels.access import scope_queryset

from . import services
from .models import InventoryItem
from .serializers import InventoryItemSerializer, StockAdjustmentSerializer, StockTransactionSerializer

HOTEL_PARAMETER = OpenApiParameter(
    name='hotel', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY,
    description='Hotel ID (super admin only; other staff always see their own hotel)'
)
ITEM_ID_PARAMETER = OpenApiParameter(
    name='item_id', type=OpenApiTypes.INT, location=OpenApiParameter.PATH, description='Inventory item ID'
)


class InventoryListCreateView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'POST': MANAGEMENT_ROLES}

    @extend_schema(
        summary="List inventory items",
        parameters=[
            HOTEL_PARAMETER,
            OpenApiParameter(name='category', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='search', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
        ],
        responses={200: InventoryItemSerializer(many=True)},
    )
    def get(self, request):
        items = scope_queryset(request.user, InventoryItem.objects.filter(is_active=True),
                               request.query_params.get('hotel'))
        if request.query_params.get('category'):
            items = items.filter(category=request.query_params['category'])
        if request.query_params.get('search'):
            items = items.filter(name__icontains=request.query_params['search'])
        return paginated_response(request, items, InventoryItemSerializer, 'Inventory items fetched successfully')

    @extend_schema(
        summary="Create an inventory item",
        description="Opening stock above zero is recorded as a purchase in the stock ledger.",
        request=InventoryItemSerializer,
        responses={201: InventoryItemSerializer},
        examples=[
            OpenApiExample(
                'Create Item Example',
                value={'name': 'Milk', 'category': 'beverage', 'unit': 'l', 'sku': 'MLK-1',
                       'quantity_current': '20', 'quantity_minimum': '5', 'purchase_price': '60'}
            )
        ]
    )
    def post(self, request):
        serializer = InventoryItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.create_inventory_item(request.user, serializer.validated_data, request.data.get('hotel'))
        return success_response('Inventory item created successfully', InventoryItemSerializer(item).data,
                                status.HTTP_201_CREATED)


class InventoryDetailView(APIView):
    permission_classes = [HasRole]
    allowed_roles_by_method = {'PATCH': MANAGEMENT_ROLES}

    @extend_schema(summary="Get inventory item", parameters=[ITEM_ID_PARAMETER],
                   responses={200: InventoryItemSerializer})
    def get(self, request, item_id):
        item = services.get_inventory_item(request.user, item_id)
        return success_response('Inventory item fetched successfully', InventoryItemSerializer(item).data)

    @extend_schema(
        summary="Update inventory item",
        description="Stock quantities are ignored here; use the adjust endpoint.",
        parameters=[ITEM_ID_PARAMETER],
        request=InventoryItemSerializer,
        responses={200: InventoryItemSerializer},
    )
    def patch(self, request, item_id):
        serializer = InventoryItemSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        item = services.update_inventory_item(request.user, item_id, serializer.validated_data)
        return success_response('Inventory item updated successfully', InventoryItemSerializer(item).data)


class StockAdjustView(APIView):
    permission_classes = [HasRole]
    allowed_roles = MANAGEMENT_ROLES

    @extend_schema(
        summary="Adjust stock",
        parameters=[ITEM_ID_PARAMETER],
        request=StockAdjustmentSerializer,
        responses={200: InventoryItemSerializer},
        examples=[
            OpenApiExample('Restock', value={'quantity': '10', 'type': 'add', 'reason': 'Weekly delivery'}),
            OpenApiExample('Spoilage', value={'quantity': '2', 'type': 'deduct', 'reason': 'wastage'}),
        ]
    )
    def post(self, request, item_id):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        item, stock_transaction = services.adjust_stock(
            request.user, item_id, data['quantity'], data['type'], data.get('reason', ''), data.get('cost'),
        )
        return success_response('Stock adjusted successfully', {
            'item': InventoryItemSerializer(item).data,
            'transaction': StockTransactionSerializer(stock_transaction).data,
        })


class StockTransactionListView(APIView):
    @extend_schema(summary="Stock ledger of an item", parameters=[ITEM_ID_PARAMETER],
                   responses={200: StockTransactionSerializer(many=True)})
    def get(self, request, item_id):
        item = services.get_inventory_item(request.user, item_id)
        transactions = item.transactions.select_related('inventory_item')
        return paginated_response(request, transactions, StockTransactionSerializer,
                                  'Stock transactions fetched successfully')


class LowStockView(APIView):
    @extend_schema(summary="Low stock alerts", description="Active items at or below their minimum level.",
                   parameters=[HOTEL_PARAMETER], responses={200: InventoryItemSerializer(many=True)})
    def get(self, request):
        items = services.low_stock_items(request.user, request.query_params.get('hotel'))
        return success_response('Low stock items fetched successfully',
                                InventoryItemSerializer(items, many=True).data)
