"""GraphQL documents used against the Saleor API.

``GET_CONFIG_QUERY`` retrieves every managed section in one call. Connection
fields are capped at the first 100 nodes, the largest page Saleor serves.

Mutations return the standard ``errors { field message }`` payload, checked
by ``saleor_services``.
"""

# =============================================================================
# Remote Configuration
# =============================================================================

GET_CONFIG_QUERY = """
query GetConfig {
  shop {
    headerText
    description
    defaultMailSenderName
    defaultMailSenderAddress
    customerSetPasswordUrl
    displayGrossPrices
    enableAccountConfirmationByEmail
    limitQuantityPerCheckout
    trackInventoryByDefault
    reserveStockDurationAnonymousUser
    reserveStockDurationAuthenticatedUser
    defaultDigitalMaxDownloads
    defaultDigitalUrlValidDays
    defaultWeightUnit
    allowLoginWithoutConfirmation
    fulfillmentAutoApprove
    fulfillmentAllowUnpaid
  }
  channels {
    id
    name
    slug
    currencyCode
    isActive
    defaultCountry { code }
    stockSettings { allocationStrategy }
    checkoutSettings { useLegacyErrorFlow automaticallyCompleteFullyPaidCheckouts }
    paymentSettings { defaultTransactionFlowStrategy }
    orderSettings {
      automaticallyConfirmAllNewOrders
      automaticallyFulfillNonShippableGiftCard
      expireOrdersAfter
      deleteExpiredOrdersAfter
      markAsPaidStrategy
      allowUnpaidOrders
      includeDraftOrderInVoucherUsage
    }
  }
  warehouses(first: 100) {
    edges {
      node {
        id
        name
        slug
        email
        isPrivate
        clickAndCollectOption
        address {
          streetAddress1
          streetAddress2
          city
          cityArea
          postalCode
          country { code }
          countryArea
          companyName
          phone
        }
        shippingZones(first: 100) { edges { node { name } } }
      }
    }
  }
  shippingZones(first: 100) {
    edges {
      node {
        id
        name
        description
        default
        countries { code }
        warehouses { name }
        channels { slug }
        shippingMethods { name type description }
      }
    }
  }
  taxClasses(first: 100) {
    edges {
      node {
        id
        name
        countries { country { code } rate }
      }
    }
  }
  attributes(first: 100) {
    edges {
      node {
        id
        name
        slug
        inputType
        entityType
        choices(first: 100) { edges { node { name } } }
      }
    }
  }
  productTypes(first: 100) {
    edges {
      node {
        id
        name
        slug
        isShippingRequired
        productAttributes { name }
        assignedVariantAttributes { attribute { name } variantSelection }
      }
    }
  }
  pageTypes(first: 100) {
    edges {
      node {
        id
        name
        slug
        attributes { name }
      }
    }
  }
  pages(first: 100) {
    edges {
      node {
        id
        title
        slug
        content
        isPublished
        publishedAt
        pageType { name }
        attributes { attribute { name } values { name } }
      }
    }
  }
  categories(first: 100) {
    edges {
      node {
        id
        name
        slug
        description
        parent { slug }
      }
    }
  }
  products(first: 100) {
    edges {
      node {
        id
        name
        slug
        description
        productType { name }
        category { slug }
        taxClass { name }
        attributes { attribute { name } values { name } }
        channelListings {
          channel { slug }
          isPublished
          visibleInListings
          availableForPurchaseAt
          publishedAt
        }
        variants {
          name
          sku
          weight { value }
          attributes { attribute { name } values { name } }
          channelListings { channel { slug } price { amount } costPrice { amount } }
        }
      }
    }
  }
  collections(first: 100) {
    edges {
      node {
        id
        name
        slug
        description
        products(first: 100) { edges { node { slug } } }
        channelListings { channel { slug } isPublished }
      }
    }
  }
  menus(first: 100) {
    edges {
      node {
        id
        name
        slug
        items {
          name
          url
          category { slug }
          collection { slug }
          page { slug }
          children {
            name
            url
            category { slug }
            collection { slug }
            page { slug }
            children { name url category { slug } collection { slug } page { slug } }
          }
        }
      }
    }
  }
}
"""

# =============================================================================
# Lookups
# =============================================================================

CHANNELS_QUERY = """
query Channels {
  channels { id slug }
}
"""

WAREHOUSES_QUERY = """
query Warehouses {
  warehouses(first: 100) { edges { node { id slug name } } }
}
"""

SHIPPING_ZONES_QUERY = """
query ShippingZones {
  shippingZones(first: 100) { edges { node { id name } } }
}
"""

TAX_CLASSES_QUERY = """
query TaxClasses {
  taxClasses(first: 100) { edges { node { id name } } }
}
"""

ATTRIBUTES_BY_NAMES_QUERY = """
query AttributesByNames($names: [String!]!) {
  attributes(first: 100, where: { name: { oneOf: $names } }) {
    edges {
      node {
        id
        name
        slug
        inputType
        choices(first: 100) { edges { node { name } } }
      }
    }
  }
}
"""

ATTRIBUTES_QUERY = """
query Attributes {
  attributes(first: 100) { edges { node { id name slug inputType } } }
}
"""

PRODUCT_TYPES_QUERY = """
query ProductTypes {
  productTypes(first: 100) {
    edges {
      node {
        id
        name
        productAttributes { id }
        assignedVariantAttributes { attribute { id } }
      }
    }
  }
}
"""

PAGE_TYPES_QUERY = """
query PageTypes {
  pageTypes(first: 100) { edges { node { id name attributes { id } } } }
}
"""

CATEGORIES_QUERY = """
query Categories {
  categories(first: 100) { edges { node { id slug name } } }
}
"""

PRODUCT_QUERY = """
query Product($slug: String!) {
  product(slug: $slug) {
    id
    variants { id sku }
  }
}
"""

COLLECTIONS_QUERY = """
query Collections {
  collections(first: 100) { edges { node { id slug } } }
}
"""

PRODUCTS_BY_SLUGS_QUERY = """
query ProductsBySlugs($slugs: [String!]!) {
  products(first: 100, filter: { slugs: $slugs }) { edges { node { id slug } } }
}
"""

PAGES_QUERY = """
query Pages {
  pages(first: 100) { edges { node { id slug } } }
}
"""

MENUS_QUERY = """
query Menus {
  menus(first: 100) { edges { node { id slug items { id } } } }
}
"""

# =============================================================================
# Mutations
# =============================================================================

SHOP_SETTINGS_UPDATE = """
mutation ShopSettingsUpdate($input: ShopSettingsInput!) {
  shopSettingsUpdate(input: $input) { errors { field message } }
}
"""

CHANNEL_CREATE = """
mutation ChannelCreate($input: ChannelCreateInput!) {
  channelCreate(input: $input) { channel { id } errors { field message } }
}
"""

CHANNEL_UPDATE = """
mutation ChannelUpdate($id: ID!, $input: ChannelUpdateInput!) {
  channelUpdate(id: $id, input: $input) { channel { id } errors { field message } }
}
"""

WAREHOUSE_CREATE = """
mutation WarehouseCreate($input: WarehouseCreateInput!) {
  createWarehouse(input: $input) { warehouse { id } errors { field message } }
}
"""

WAREHOUSE_UPDATE = """
mutation WarehouseUpdate($id: ID!, $input: WarehouseUpdateInput!) {
  updateWarehouse(id: $id, input: $input) { warehouse { id } errors { field message } }
}
"""

SHIPPING_ZONE_CREATE = """
mutation ShippingZoneCreate($input: ShippingZoneCreateInput!) {
  shippingZoneCreate(input: $input) { shippingZone { id } errors { field message } }
}
"""

SHIPPING_ZONE_UPDATE = """
mutation ShippingZoneUpdate($id: ID!, $input: ShippingZoneUpdateInput!) {
  shippingZoneUpdate(id: $id, input: $input) { shippingZone { id } errors { field message } }
}
"""

TAX_CLASS_CREATE = """
mutation TaxClassCreate($input: TaxClassCreateInput!) {
  taxClassCreate(input: $input) { taxClass { id } errors { field message } }
}
"""

TAX_CLASS_UPDATE = """
mutation TaxClassUpdate($id: ID!, $input: TaxClassUpdateInput!) {
  taxClassUpdate(id: $id, input: $input) { taxClass { id } errors { field message } }
}
"""

ATTRIBUTE_CREATE = """
mutation AttributeCreate($input: AttributeCreateInput!) {
  attributeCreate(input: $input) { attribute { id } errors { field message } }
}
"""

ATTRIBUTE_UPDATE = """
mutation AttributeUpdate($id: ID!, $input: AttributeUpdateInput!) {
  attributeUpdate(id: $id, input: $input) { attribute { id } errors { field message } }
}
"""

PRODUCT_TYPE_CREATE = """
mutation ProductTypeCreate($input: ProductTypeInput!) {
  productTypeCreate(input: $input) { productType { id } errors { field message } }
}
"""

PRODUCT_TYPE_UPDATE = """
mutation ProductTypeUpdate($id: ID!, $input: ProductTypeInput!) {
  productTypeUpdate(id: $id, input: $input) { productType { id } errors { field message } }
}
"""

PRODUCT_ATTRIBUTE_ASSIGN = """
mutation ProductAttributeAssign($productTypeId: ID!, $operations: [ProductAttributeAssignInput!]!) {
  productAttributeAssign(productTypeId: $productTypeId, operations: $operations) {
    errors { field message }
  }
}
"""

PAGE_TYPE_CREATE = """
mutation PageTypeCreate($input: PageTypeCreateInput!) {
  pageTypeCreate(input: $input) { pageType { id } errors { field message } }
}
"""

PAGE_TYPE_UPDATE = """
mutation PageTypeUpdate($id: ID!, $input: PageTypeUpdateInput!) {
  pageTypeUpdate(id: $id, input: $input) { pageType { id } errors { field message } }
}
"""

PAGE_CREATE = """
mutation PageCreate($input: PageCreateInput!) {
  pageCreate(input: $input) { page { id } errors { field message } }
}
"""

PAGE_UPDATE = """
mutation PageUpdate($id: ID!, $input: PageInput!) {
  pageUpdate(id: $id, input: $input) { page { id } errors { field message } }
}
"""

CATEGORY_CREATE = """
mutation CategoryCreate($parent: ID, $input: CategoryInput!) {
  categoryCreate(parent: $parent, input: $input) { category { id } errors { field message } }
}
"""

CATEGORY_UPDATE = """
mutation CategoryUpdate($id: ID!, $input: CategoryInput!) {
  categoryUpdate(id: $id, input: $input) { category { id } errors { field message } }
}
"""

PRODUCT_CREATE = """
mutation ProductCreate($input: ProductCreateInput!) {
  productCreate(input: $input) { product { id } errors { field message } }
}
"""

PRODUCT_UPDATE = """
mutation ProductUpdate($id: ID!, $input: ProductInput!) {
  productUpdate(id: $id, input: $input) { product { id } errors { field message } }
}
"""

PRODUCT_CHANNEL_LISTING_UPDATE = """
mutation ProductChannelListingUpdate($id: ID!, $input: ProductChannelListingUpdateInput!) {
  productChannelListingUpdate(id: $id, input: $input) { errors { field message } }
}
"""

VARIANT_CREATE = """
mutation VariantCreate($input: ProductVariantCreateInput!) {
  productVariantCreate(input: $input) { productVariant { id } errors { field message } }
}
"""

VARIANT_UPDATE = """
mutation VariantUpdate($id: ID!, $input: ProductVariantInput!) {
  productVariantUpdate(id: $id, input: $input) { productVariant { id } errors { field message } }
}
"""

VARIANT_CHANNEL_LISTING_UPDATE = """
mutation VariantChannelListingUpdate($id: ID!, $input: [ProductVariantChannelListingAddInput!]!) {
  productVariantChannelListingUpdate(id: $id, input: $input) { errors { field message } }
}
"""

COLLECTION_CREATE = """
mutation CollectionCreate($input: CollectionCreateInput!) {
  collectionCreate(input: $input) { collection { id } errors { field message } }
}
"""

COLLECTION_UPDATE = """
mutation CollectionUpdate($id: ID!, $input: CollectionInput!) {
  collectionUpdate(id: $id, input: $input) { collection { id } errors { field message } }
}
"""

COLLECTION_ADD_PRODUCTS = """
mutation CollectionAddProducts($collectionId: ID!, $products: [ID!]!) {
  collectionAddProducts(collectionId: $collectionId, products: $products) {
    errors { field message }
  }
}
"""

COLLECTION_CHANNEL_LISTING_UPDATE = """
mutation CollectionChannelListingUpdate($id: ID!, $input: CollectionChannelListingUpdateInput!) {
  collectionChannelListingUpdate(id: $id, input: $input) { errors { field message } }
}
"""

MENU_CREATE = """
mutation MenuCreate($input: MenuCreateInput!) {
  menuCreate(input: $input) { menu { id } errors { field message } }
}
"""

MENU_UPDATE = """
mutation MenuUpdate($id: ID!, $input: MenuInput!) {
  menuUpdate(id: $id, input: $input) { menu { id } errors { field message } }
}
"""

MENU_ITEM_CREATE = """
mutation MenuItemCreate($input: MenuItemCreateInput!) {
  menuItemCreate(input: $input) { menuItem { id } errors { field message } }
}
"""

MENU_ITEM_DELETE = """
mutation MenuItemDelete($id: ID!) {
  menuItemDelete(id: $id) { errors { field message } }
}
"""
