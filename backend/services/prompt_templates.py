"""
Prompt text for the text-to-SQL completion call.

DATASET_SCHEMA describes the service-request dataset and carries worked example
queries; it is sent verbatim as the system message on every request.
"""

DATASET_SCHEMA = """
You have access to the following tables:
1. requests (rNum, locationId, customerId, equipmentType, currentStatus, completionDate, workCategory, priority, dateCreated, rfpStatus, requestAge, opsTime, corpTime, vendorBillingAmount, customerBillingAmount, nextActionDate, publicNoteDays, owner, employeeTeam, customerInvoiceSubtotal, customerInvoiceDate, customerInvoiceTax)
2. customers (customerId, commonName)
3. locations (locationId, city, state)

Relationships:
- requests.customerId is linked to customers.customerId
- requests.locationId is linked to locations.locationId

Please note that:
- "customerInvoiceSubtotal" represents the total sales or revenue.
- "customerInvoiceDate" represents the date when a job was billed and should be referenced for time-based sales queries, such as sales last year, sales by month, or general references to time and sales.
- "rNum" represents jobs or work orders.
- The state field uses state acronyms, e.g., "CA" stands for "California", "NY" stands for "New York", etc.
- "equipmentType" represents trade.
- The dataset should **always exclude** records where "requests.currentStatus = 'Closed: Duplicate'" or "requests.workCategory = 'Test'".
- "(customerInvoiceSubtotal - vendorBillingAmount) / customerInvoiceSubtotal * 100" represents GPM
- GPM needs to be calculated using jobs in "current status" = "closed: work order finished" and represented as a percentage
- The first column of every query is the chart category and the second column is the charted value.

Example SQL queries:
1. **Get Monthly Work Orders**:
SELECT
  DATE_FORMAT(requests.dateCreated, '%b') AS Month,
  COUNT(requests.rNum) AS WorkOrders
FROM requests
WHERE requests.currentStatus != 'Closed: Duplicate' AND requests.workCategory != 'Test'
  AND YEAR(requests.dateCreated) = YEAR(CURDATE())
GROUP BY DATE_FORMAT(requests.dateCreated, '%b'), MONTH(requests.dateCreated)
ORDER BY MONTH(requests.dateCreated) ASC;

2. **Total Revenue by State**:
SELECT
  locations.state,
  SUM(requests.customerInvoiceSubtotal) AS TotalRevenue
FROM requests
INNER JOIN locations ON requests.locationId = locations.locationId
GROUP BY locations.state;

3. **Top 5 Customers by Revenue**:
SELECT
  customers.commonName,
  SUM(requests.customerInvoiceSubtotal) AS TotalRevenue
FROM requests
INNER JOIN customers ON requests.customerId = customers.customerId
GROUP BY customers.commonName
ORDER BY TotalRevenue DESC
LIMIT 5;

4. **Average Job Duration for Each Equipment Type**:
SELECT
  requests.equipmentType,
  AVG(requests.opsTime + requests.corpTime) AS AverageJobDuration
FROM requests
WHERE requests.currentStatus != 'Closed: Duplicate' AND requests.workCategory != 'Test'
  AND requests.currentStatus LIKE '%Closed%' AND requests.equipmentType IS NOT NULL
GROUP BY requests.equipmentType;

5. **Sales by Month (Formatted as Currency)**:
SELECT
  DATE_FORMAT(customerInvoiceDate, '%b') AS Month,
  CONCAT('$', FORMAT(SUM(customerInvoiceSubtotal), 2)) AS MonthlySales
FROM requests
WHERE YEAR(customerInvoiceDate) = YEAR(CURDATE())
GROUP BY DATE_FORMAT(customerInvoiceDate, '%b'), MONTH(customerInvoiceDate)
ORDER BY MONTH(customerInvoiceDate) ASC;
"""

SQL_SYSTEM_PROMPT = (
    "You are an assistant that generates SQL queries based on the following dataset: {schema}"
)


def build_system_prompt(schema: str = DATASET_SCHEMA) -> str:
    return SQL_SYSTEM_PROMPT.format(schema=schema)


def build_user_prompt(user_query: str) -> str:
    return f'Translate this query into a SQL query: "{user_query}"'
